"""Translation between document records and relational rows.

Documents are camelCase dicts keyed by natural identifiers; rows reference
each other through integer surrogate keys. `<entity>_to_relational` returns
the column values for a row, `<entity>_to_document` rebuilds the document
from a row loaded in an open session.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from cumulus_api.db import tables
from cumulus_api.errors import ReferenceNotFoundError
from cumulus_api.monitoring import logger
from cumulus_api.schemas import (
    construct_collection_id,
    deconstruct_collection_id,
    upgrade_file,
)
from cumulus_api.timestamps import (
    datetime_to_iso,
    datetime_to_ms,
    iso_to_datetime,
    ms_to_datetime,
)

FieldMap = Tuple[Tuple[str, str], ...]


def _rename(record: Dict[str, Any], fields: FieldMap) -> Dict[str, Any]:
    return {column: record.get(field) for field, column in fields}


def _rename_back(row, fields: FieldMap) -> Dict[str, Any]:
    return {field: getattr(row, column) for field, column in fields}


def _compact(document: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in document.items() if v is not None}


def _timestamps_to_relational(record: Dict[str, Any]) -> Dict[str, Any]:
    values = {
        "created_at": ms_to_datetime(record.get("createdAt")),
        "updated_at": ms_to_datetime(record.get("updatedAt")),
    }
    return {k: v for k, v in values.items() if v is not None}


def _timestamps_to_document(row) -> Dict[str, Any]:
    return {
        "createdAt": datetime_to_ms(row.created_at),
        "updatedAt": datetime_to_ms(row.updated_at),
    }


class ReferenceResolver:
    """Resolves natural keys to surrogate ids within one session."""

    def __init__(self, session: Session):
        self.session = session

    def _lookup(self, table, **criteria) -> Optional[int]:
        return self.session.execute(
            select(table.cumulus_id).filter_by(**criteria)
        ).scalar_one_or_none()

    def collection(self, collection_id: str) -> int:
        name, version = deconstruct_collection_id(collection_id)
        cumulus_id = self._lookup(tables.PgCollection, name=name, version=version)
        if cumulus_id is None:
            raise ReferenceNotFoundError(
                "collections", {"name": name, "version": version}
            )
        return cumulus_id

    def provider(self, provider_id: Optional[str]) -> Optional[int]:
        if provider_id is None:
            return None
        cumulus_id = self._lookup(tables.PgProvider, name=provider_id)
        if cumulus_id is None:
            raise ReferenceNotFoundError("providers", {"name": provider_id})
        return cumulus_id

    def async_operation(self, async_operation_id: Optional[str]) -> Optional[int]:
        if async_operation_id is None:
            return None
        cumulus_id = self._lookup(tables.PgAsyncOperation, id=async_operation_id)
        if cumulus_id is None:
            raise ReferenceNotFoundError("async_operations", {"id": async_operation_id})
        return cumulus_id

    def parent_execution(self, arn: Optional[str]) -> Optional[int]:
        if arn is None:
            return None
        cumulus_id = self._lookup(tables.PgExecution, arn=arn)
        if cumulus_id is None:
            logger.info(f"Parent execution {arn} not found, leaving parent unset")
        return cumulus_id

    def execution_by_url(self, url: Optional[str]) -> Optional[int]:
        if url is None:
            return None
        cumulus_id = self.session.execute(
            select(tables.PgExecution.cumulus_id)
            .filter_by(url=url)
            .order_by(tables.PgExecution.cumulus_id.desc())
            .limit(1)
        ).scalar_one_or_none()
        if cumulus_id is None:
            logger.info(f"Execution {url} not found, leaving execution unset")
        return cumulus_id

    def pdr(self, name: Optional[str]) -> Optional[int]:
        if name is None:
            return None
        cumulus_id = self._lookup(tables.PgPdr, name=name)
        if cumulus_id is None:
            logger.info(f"PDR {name} not found, leaving PDR unset")
        return cumulus_id


COLLECTION_FIELDS: FieldMap = (
    ("name", "name"),
    ("version", "version"),
    ("process", "process"),
    ("url_path", "url_path"),
    ("duplicateHandling", "duplicate_handling"),
    ("granuleId", "granule_id_validation_regex"),
    ("granuleIdExtraction", "granule_id_extraction_regex"),
    ("sampleFileName", "sample_file_name"),
    ("meta", "meta"),
    ("tags", "tags"),
)


def collection_to_relational(
    record: Dict[str, Any], resolver: Optional[ReferenceResolver] = None
) -> Dict[str, Any]:
    return {
        **_rename(record, COLLECTION_FIELDS),
        "files": record.get("files") or [],
        **_timestamps_to_relational(record),
    }


def collection_to_document(row: tables.PgCollection) -> Dict[str, Any]:
    return _compact(
        {
            **_rename_back(row, COLLECTION_FIELDS),
            "files": row.files or [],
            **_timestamps_to_document(row),
        }
    )


PROVIDER_FIELDS: FieldMap = (
    ("id", "name"),
    ("protocol", "protocol"),
    ("host", "host"),
    ("port", "port"),
    ("username", "username"),
    ("password", "password"),
    ("globalConnectionLimit", "global_connection_limit"),
    ("privateKey", "private_key"),
    ("cmKeyId", "cm_key_id"),
    ("certificateUri", "certificate_uri"),
)


def provider_to_relational(
    record: Dict[str, Any], resolver: Optional[ReferenceResolver] = None
) -> Dict[str, Any]:
    return {**_rename(record, PROVIDER_FIELDS), **_timestamps_to_relational(record)}


def provider_to_document(row: tables.PgProvider) -> Dict[str, Any]:
    return _compact({**_rename_back(row, PROVIDER_FIELDS), **_timestamps_to_document(row)})


ASYNC_OPERATION_FIELDS: FieldMap = (
    ("id", "id"),
    ("description", "description"),
    ("operationType", "operation_type"),
    ("status", "status"),
    ("output", "output"),
    ("taskArn", "task_arn"),
)


def async_operation_to_relational(
    record: Dict[str, Any], resolver: Optional[ReferenceResolver] = None
) -> Dict[str, Any]:
    return {
        **_rename(record, ASYNC_OPERATION_FIELDS),
        **_timestamps_to_relational(record),
    }


def async_operation_to_document(row: tables.PgAsyncOperation) -> Dict[str, Any]:
    return _compact(
        {**_rename_back(row, ASYNC_OPERATION_FIELDS), **_timestamps_to_document(row)}
    )


RULE_FIELDS: FieldMap = (
    ("name", "name"),
    ("workflow", "workflow"),
    ("executionNamePrefix", "execution_name_prefix"),
    ("queueUrl", "queue_url"),
    ("payload", "payload"),
    ("meta", "meta"),
    ("tags", "tags"),
)

RULE_TRIGGER_FIELDS: FieldMap = (
    ("type", "type"),
    ("value", "value"),
    ("arn", "arn"),
    ("logEventArn", "log_event_arn"),
)


def rule_to_relational(
    record: Dict[str, Any], resolver: ReferenceResolver
) -> Dict[str, Any]:
    collection = record.get("collection")
    return {
        **_rename(record, RULE_FIELDS),
        **_rename(record.get("rule") or {}, RULE_TRIGGER_FIELDS),
        "enabled": record.get("state", "ENABLED") == "ENABLED",
        "collection_cumulus_id": resolver.collection(
            construct_collection_id(collection["name"], collection["version"])
        )
        if collection
        else None,
        "provider_cumulus_id": resolver.provider(record.get("provider")),
        **_timestamps_to_relational(record),
    }


def rule_to_document(row: tables.PgRule) -> Dict[str, Any]:
    document = {
        **_rename_back(row, RULE_FIELDS),
        "rule": _compact(_rename_back(row, RULE_TRIGGER_FIELDS)),
        "state": "ENABLED" if row.enabled else "DISABLED",
        "collection": {"name": row.collection.name, "version": row.collection.version}
        if row.collection
        else None,
        "provider": row.provider.name if row.provider else None,
        **_timestamps_to_document(row),
    }
    return _compact(document)


EXECUTION_FIELDS: FieldMap = (
    ("arn", "arn"),
    ("execution", "url"),
    ("status", "status"),
    ("type", "workflow_name"),
    ("cumulusVersion", "cumulus_version"),
    ("tasks", "tasks"),
    ("error", "error"),
    ("originalPayload", "original_payload"),
    ("finalPayload", "final_payload"),
    ("duration", "duration"),
)


def execution_to_relational(
    record: Dict[str, Any], resolver: ReferenceResolver
) -> Dict[str, Any]:
    collection_id = record.get("collectionId")
    return {
        **_rename(record, EXECUTION_FIELDS),
        "timestamp": ms_to_datetime(record.get("timestamp")),
        "collection_cumulus_id": resolver.collection(collection_id)
        if collection_id
        else None,
        "async_operation_cumulus_id": resolver.async_operation(
            record.get("asyncOperationId")
        ),
        "parent_cumulus_id": resolver.parent_execution(record.get("parentArn")),
        **_timestamps_to_relational(record),
    }


def execution_to_document(row: tables.PgExecution) -> Dict[str, Any]:
    document = {
        **_rename_back(row, EXECUTION_FIELDS),
        "name": row.arn.split(":")[-1],
        "timestamp": datetime_to_ms(row.timestamp),
        "collectionId": construct_collection_id(
            row.collection.name, row.collection.version
        )
        if row.collection
        else None,
        "asyncOperationId": row.async_operation.id if row.async_operation else None,
        "parentArn": row.parent.arn if row.parent else None,
        **_timestamps_to_document(row),
    }
    return _compact(document)


FILE_FIELDS: FieldMap = (
    ("bucket", "bucket"),
    ("key", "key"),
    ("fileName", "file_name"),
    ("checksumType", "checksum_type"),
    ("checksum", "checksum_value"),
    ("size", "file_size"),
    ("type", "type"),
    ("source", "source"),
)


def file_to_relational(
    record: Dict[str, Any], granule_cumulus_id: Optional[int] = None
) -> Dict[str, Any]:
    values = _rename(upgrade_file(record), FILE_FIELDS)
    if granule_cumulus_id is not None:
        values["granule_cumulus_id"] = granule_cumulus_id
    return values


def file_to_document(row: tables.PgFile) -> Dict[str, Any]:
    return _compact(_rename_back(row, FILE_FIELDS))


def files_to_document(rows: Iterable[tables.PgFile]) -> List[Dict[str, Any]]:
    return [file_to_document(row) for row in rows]


PDR_FIELDS: FieldMap = (
    ("pdrName", "name"),
    ("status", "status"),
    ("progress", "progress"),
    ("stats", "stats"),
    ("PANSent", "pan_sent"),
    ("PANmessage", "pan_message"),
    ("address", "address"),
    ("originalUrl", "original_url"),
    ("duration", "duration"),
)


def pdr_to_relational(record: Dict[str, Any], resolver: ReferenceResolver) -> Dict[str, Any]:
    return {
        **_rename(record, PDR_FIELDS),
        "timestamp": ms_to_datetime(record.get("timestamp")),
        "collection_cumulus_id": resolver.collection(record["collectionId"]),
        "provider_cumulus_id": resolver.provider(record["provider"]),
        "execution_cumulus_id": resolver.execution_by_url(record.get("execution")),
        **_timestamps_to_relational(record),
    }


def pdr_to_document(row: tables.PgPdr) -> Dict[str, Any]:
    document = {
        **_rename_back(row, PDR_FIELDS),
        "timestamp": datetime_to_ms(row.timestamp),
        "collectionId": construct_collection_id(
            row.collection.name, row.collection.version
        ),
        "provider": row.provider.name,
        "execution": row.execution.url if row.execution else None,
        **_timestamps_to_document(row),
    }
    return _compact(document)


GRANULE_FIELDS: FieldMap = (
    ("granuleId", "granule_id"),
    ("status", "status"),
    ("published", "published"),
    ("cmrLink", "cmr_link"),
    ("error", "error"),
    ("productVolume", "product_volume"),
    ("duration", "duration"),
    ("timeToPreprocess", "time_to_process"),
    ("timeToArchive", "time_to_archive"),
    ("queryFields", "query_fields"),
)

GRANULE_DATETIME_FIELDS: FieldMap = (
    ("beginningDateTime", "beginning_date_time"),
    ("endingDateTime", "ending_date_time"),
    ("productionDateTime", "production_date_time"),
    ("lastUpdateDateTime", "last_update_date_time"),
    ("processingStartDateTime", "processing_start_date_time"),
    ("processingEndDateTime", "processing_end_date_time"),
)


def granule_to_relational(
    record: Dict[str, Any], resolver: ReferenceResolver
) -> Dict[str, Any]:
    """Granule columns. Files and execution links are written separately."""
    return {
        **_rename(record, GRANULE_FIELDS),
        **{
            column: iso_to_datetime(record.get(field))
            for field, column in GRANULE_DATETIME_FIELDS
        },
        "timestamp": ms_to_datetime(record.get("timestamp")),
        "collection_cumulus_id": resolver.collection(record["collectionId"]),
        "provider_cumulus_id": resolver.provider(record.get("provider")),
        "pdr_cumulus_id": resolver.pdr(record.get("pdrName")),
        "execution_cumulus_id": resolver.execution_by_url(record.get("execution")),
        **_timestamps_to_relational(record),
    }


def granule_to_document(row: tables.PgGranule) -> Dict[str, Any]:
    document = {
        **_rename_back(row, GRANULE_FIELDS),
        **{
            field: datetime_to_iso(getattr(row, column))
            for field, column in GRANULE_DATETIME_FIELDS
        },
        "timestamp": datetime_to_ms(row.timestamp),
        "collectionId": construct_collection_id(
            row.collection.name, row.collection.version
        ),
        "provider": row.provider.name if row.provider else None,
        "pdrName": row.pdr.name if row.pdr else None,
        "execution": row.execution.url if row.execution else None,
        "files": files_to_document(row.files),
        **_timestamps_to_document(row),
    }
    return _compact(document)
