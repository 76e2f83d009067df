from typing import Any, Dict, List, Optional

from cumulus_api import schemas, translate
from cumulus_api.coordinator import RecordType
from cumulus_api.db import models, tables
from cumulus_api.errors import ReferenceNotFoundError
from cumulus_api.messages import StatusReport, now_ms
from cumulus_api.records.base import Identifier, Record, ReportedRecordService
from cumulus_api.resolver import GRANULE_POLICY
from cumulus_api.timestamps import datetime_to_iso, ms_to_datetime


def product_volume(files: List[Dict[str, Any]]) -> int:
    """Sum of the file sizes in bytes, ignoring files without an integer size"""
    return sum(
        f["size"]
        for f in files
        if isinstance(f.get("size"), int) and not isinstance(f.get("size"), bool)
    )


def processing_time_info(
    start_ms: Optional[int], stop_ms: Optional[int], now: int
) -> Dict[str, str]:
    if start_ms is None:
        return {}
    return {
        "processingStartDateTime": datetime_to_iso(ms_to_datetime(start_ms)),
        "processingEndDateTime": datetime_to_iso(ms_to_datetime(stop_ms or now)),
    }


def generate_granule_records(report: StatusReport) -> List[Dict[str, Any]]:
    """Build one granule record per granule in the report payload."""
    now = now_ms()
    processing = processing_time_info(report.startTime, report.stopTime, now)
    pdr_name = (report.payload.get("pdr") or {}).get("name")

    records = []
    for granule in report.payload.get("granules") or []:
        files = [schemas.upgrade_file(f) for f in granule.get("files") or []]
        if granule.get("dataType") and granule.get("version"):
            collection_id = schemas.construct_collection_id(
                granule["dataType"], granule["version"]
            )
        else:
            collection_id = report.collectionId
        record = {
            "granuleId": granule.get("granuleId"),
            "collectionId": collection_id,
            "status": report.status.value,
            "execution": report.execution_url,
            "files": files,
            "error": report.error,
            "published": granule.get("published", False),
            "cmrLink": granule.get("cmrLink"),
            "pdrName": pdr_name,
            "provider": report.providerId,
            "productVolume": product_volume(files),
            "duration": report.duration,
            "timeToPreprocess": granule.get("sync_granule_duration", 0) / 1000,
            "timeToArchive": granule.get("post_to_cmr_duration", 0) / 1000,
            **processing,
            "createdAt": report.startTime,
            "updatedAt": now,
            "timestamp": now,
        }
        records.append({k: v for k, v in record.items() if v is not None})
    return records


def sync_files(granule: tables.PgGranule, files: List[Dict[str, Any]]) -> None:
    """Make the granule's file rows match `files`, reusing rows by location."""
    existing = {(row.bucket, row.key): row for row in granule.files}
    rows = []
    for file in files:
        values = translate.file_to_relational(file)
        row = existing.pop((values["bucket"], values["key"]), None)
        if row is None:
            row = tables.PgFile(**values)
        else:
            for column, value in values.items():
                setattr(row, column, value)
        rows.append(row)
    # rows left in `existing` are orphaned and deleted
    granule.files = rows


class GranuleRecordType(RecordType):
    name = "granule"
    pg = models.granules
    key_map = {"granuleId": "granule_id", "collectionId": "collection_cumulus_id"}

    def identifier(self, record: Record) -> str:
        return record["granuleId"]

    def relational_key(self, resolver, key):
        try:
            collection_cumulus_id = resolver.collection(key["collectionId"])
        except ReferenceNotFoundError:
            return None
        return {
            "granule_id": key["granuleId"],
            "collection_cumulus_id": collection_cumulus_id,
        }

    def to_relational(self, record, resolver):
        return translate.granule_to_relational(record, resolver)

    def to_document(self, row):
        return translate.granule_to_document(row)

    def write_dependents(self, session, row, record, resolver):
        if record.get("files") is not None:
            sync_files(row, record["files"])
        if row.execution_cumulus_id is not None:
            execution = session.get(tables.PgExecution, row.execution_cumulus_id)
            if execution not in row.executions:
                row.executions.append(execution)
        session.flush()


class GranuleService(ReportedRecordService):
    record_type = GranuleRecordType()
    model = schemas.Granule
    title = "Granule"
    policy = GRANULE_POLICY

    def key(self, identifier: Identifier) -> Record:
        """Accepts a record or a (granuleId, collectionId) pair."""
        if isinstance(identifier, tuple):
            granule_id, collection_id = identifier
            return {"granuleId": granule_id, "collectionId": collection_id}
        return super().key(identifier)
