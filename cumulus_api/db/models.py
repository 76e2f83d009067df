"""Row access helpers shared by every relational table."""

from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cumulus_api.db import tables
from cumulus_api.errors import RecordDoesNotExist

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


def _sqlstate(error: IntegrityError) -> Optional[str]:
    return getattr(error.orig, "sqlstate", None) or getattr(error.orig, "pgcode", None)


def is_unique_violation(error: IntegrityError) -> bool:
    return _sqlstate(error) == UNIQUE_VIOLATION or "UNIQUE constraint failed" in str(
        error.orig
    )


def is_foreign_key_violation(error: IntegrityError) -> bool:
    return (
        _sqlstate(error) == FOREIGN_KEY_VIOLATION
        or "FOREIGN KEY constraint failed" in str(error.orig)
    )


# record type and the column naming each record that may hold a reference
DEPENDENT_COLUMNS = (
    ("rules", tables.PgRule.name),
    ("granules", tables.PgGranule.granule_id),
    ("executions", tables.PgExecution.arn),
    ("pdrs", tables.PgPdr.name),
)


def referencing_records(
    session: Session, foreign_key: str, cumulus_id: int
) -> Optional[Tuple[str, List[str]]]:
    """First kind of record referencing `cumulus_id` through `foreign_key`,
    with the identifiers of those records.
    """
    for record_type, column in DEPENDENT_COLUMNS:
        if not hasattr(column.class_, foreign_key):
            continue
        identifiers = list(
            session.execute(
                select(column)
                .filter_by(**{foreign_key: cumulus_id})
                .order_by(column)
            ).scalars()
        )
        if identifiers:
            return record_type, identifiers
    return None


class PgModel:
    """Lookups and writes on one table by its natural key."""

    def __init__(self, table: Type[tables.Base], key_columns: Sequence[str]):
        self.table = table
        self.key_columns = tuple(key_columns)

    @property
    def table_name(self) -> str:
        return self.table.__tablename__

    def _statement(self, key: Dict[str, Any]):
        return select(self.table).filter_by(
            **{column: key[column] for column in self.key_columns}
        )

    def find(self, session: Session, key: Dict[str, Any]):
        return session.execute(self._statement(key)).scalar_one_or_none()

    def get(self, session: Session, key: Dict[str, Any]):
        row = self.find(session, key)
        if row is None:
            raise RecordDoesNotExist(
                f"Record in {self.table_name} with identifiers {key} does not exist."
            )
        return row

    def get_record_cumulus_id(self, session: Session, key: Dict[str, Any]) -> int:
        return self.get(session, key).cumulus_id

    def exists(self, session: Session, key: Dict[str, Any]) -> bool:
        return self.find(session, key) is not None

    def search(self, session: Session, **criteria) -> List[Any]:
        statement = select(self.table).filter_by(**criteria).order_by(
            self.table.cumulus_id
        )
        return list(session.execute(statement).scalars())

    def create(self, session: Session, values: Dict[str, Any]):
        row = self.table(**values)
        session.add(row)
        session.flush()
        return row

    def update(self, session: Session, row, values: Dict[str, Any]):
        for column, value in values.items():
            setattr(row, column, value)
        session.flush()
        return row

    def upsert(self, session: Session, key: Dict[str, Any], values: Dict[str, Any]):
        """Update the row holding `key`, creating it when there is none.

        An existing row keeps its `created_at` unless `values` carries one.
        """
        row = self.find(session, key)
        if row is None:
            return self.create(session, values)
        return self.update(session, row, values)


collections = PgModel(tables.PgCollection, ["name", "version"])
providers = PgModel(tables.PgProvider, ["name"])
async_operations = PgModel(tables.PgAsyncOperation, ["id"])
rules = PgModel(tables.PgRule, ["name"])
executions = PgModel(tables.PgExecution, ["arn"])
pdrs = PgModel(tables.PgPdr, ["name"])
granules = PgModel(tables.PgGranule, ["granule_id", "collection_cumulus_id"])
files = PgModel(tables.PgFile, ["bucket", "key"])
