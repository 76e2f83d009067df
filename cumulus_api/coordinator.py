"""Dual-store writes.

The relational store is authoritative: every write runs in one relational
transaction, and the committed result is then mirrored into the document store
and the search index. A failed mirror is reported on the `WriteResult`, the
relational commit stands.
"""

import abc
import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from cumulus_api.db.models import PgModel, is_foreign_key_violation, is_unique_violation
from cumulus_api.errors import (
    AssociatedRecordError,
    CollisionError,
    PartialMirrorFailure,
    RecordDoesNotExist,
)
from cumulus_api.monitoring import count, logger, tracer
from cumulus_api.search import SearchIndex
from cumulus_api.services import DocumentStore
from cumulus_api.timestamps import datetime_to_ms
from cumulus_api.translate import ReferenceResolver

Record = Dict[str, Any]


class Operation(str, enum.Enum):
    create = "create"
    update = "update"
    upsert = "upsert"
    delete = "delete"


class RecordType(abc.ABC):
    """One entity as stored in both stores."""

    name: str
    pg: PgModel
    # document key field -> relational key column
    key_map: Dict[str, str]

    @property
    def document_key_fields(self) -> Tuple[str, ...]:
        return tuple(self.key_map)

    def document_key(self, record: Record) -> Record:
        return {field: record[field] for field in self.key_map}

    def identifier(self, record: Record) -> str:
        return "___".join(str(record[field]) for field in self.key_map)

    def relational_key(
        self, resolver: ReferenceResolver, key: Record
    ) -> Optional[Record]:
        """Relational key for a document key, None when it cannot exist."""
        return {column: key[field] for field, column in self.key_map.items()}

    def find_row(self, session: Session, key: Record):
        relational_key = self.relational_key(ReferenceResolver(session), key)
        if relational_key is None:
            return None
        return self.pg.find(session, relational_key)

    @abc.abstractmethod
    def to_relational(self, record: Record, resolver: ReferenceResolver) -> Record:
        ...

    @abc.abstractmethod
    def to_document(self, row) -> Record:
        ...

    def write_dependents(
        self, session: Session, row, record: Record, resolver: ReferenceResolver
    ) -> None:
        """Relational writes that belong in the same transaction as the row."""

    def find_dependents(self, session: Session, row) -> Optional[Tuple[str, List[str]]]:
        """Records that block deleting `row`, as (record type, identifiers)."""
        return None


@dataclass
class WriteResult:
    operation: Operation
    record: Record
    mirror_error: Optional[PartialMirrorFailure] = None
    applied: bool = True
    outcome: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.mirror_error is not None


class TransactionCoordinator:
    def __init__(
        self,
        session_factory: sessionmaker,
        documents: Mapping[str, DocumentStore],
        index: Optional[SearchIndex] = None,
    ):
        self.session_factory = session_factory
        self.documents = documents
        self.index = index

    def document_store(self, record_type: RecordType) -> DocumentStore:
        return self.documents[record_type.name]

    @tracer.capture_method
    def write(
        self, operation: Operation, record_type: RecordType, record: Record
    ) -> WriteResult:
        if operation is Operation.delete:
            return self._delete(record_type, record)

        identifier = record_type.identifier(record)
        try:
            with self.session_factory.begin() as session:
                resolver = ReferenceResolver(session)
                values = record_type.to_relational(record, resolver)
                key = {column: values[column] for column in record_type.pg.key_columns}
                if operation is Operation.create:
                    row = record_type.pg.create(session, values)
                else:
                    # updates of records that predate the relational store create their row
                    row = record_type.pg.upsert(session, key, values)
                record_type.write_dependents(session, row, record, resolver)
                document = {
                    **record,
                    "createdAt": datetime_to_ms(row.created_at),
                    "updatedAt": datetime_to_ms(row.updated_at),
                }
        except IntegrityError as e:
            if is_unique_violation(e):
                raise CollisionError(identifier) from e
            raise

        return self._mirror(operation, record_type, identifier, document)

    def _delete(self, record_type: RecordType, key: Record) -> WriteResult:
        identifier = record_type.identifier(key)
        try:
            with self.session_factory.begin() as session:
                row = record_type.find_row(session, key)
                if row is None:
                    logger.info(
                        f"No relational {record_type.name} {identifier}, "
                        "deleting document only"
                    )
                else:
                    dependents = record_type.find_dependents(session, row)
                    if dependents:
                        dependent_type, identifiers = dependents
                        raise AssociatedRecordError(
                            record_type.name, dependent_type, identifiers
                        )
                    session.delete(row)
                    session.flush()
        except IntegrityError as e:
            if is_foreign_key_violation(e):
                raise AssociatedRecordError(record_type.name, "records", []) from e
            raise

        return self._mirror(Operation.delete, record_type, identifier, key)

    def _mirror(
        self,
        operation: Operation,
        record_type: RecordType,
        identifier: str,
        document: Record,
    ) -> WriteResult:
        store = self.document_store(record_type)
        try:
            if operation is Operation.delete:
                store.delete(store.key(document))
                if self.index:
                    self.index.delete(record_type.name, identifier)
            else:
                store.write(document)
                if self.index:
                    self.index.upsert(record_type.name, identifier, document)
        except Exception as e:
            failure = PartialMirrorFailure(record_type.name, identifier, e)
            logger.exception(str(failure))
            count("PartialMirrorFailure")
            return WriteResult(operation, document, mirror_error=failure)
        return WriteResult(operation, document)

    def read(self, record_type: RecordType, key: Record) -> Record:
        """Read the document, falling back to the relational row."""
        try:
            return self.document_store(record_type).fetch_one(key)
        except RecordDoesNotExist:
            pass

        with self.session_factory() as session:
            row = record_type.find_row(session, key)
            if row is None:
                raise RecordDoesNotExist(
                    f"{record_type.name} {record_type.identifier(key)} does not exist"
                )
            return record_type.to_document(row)
