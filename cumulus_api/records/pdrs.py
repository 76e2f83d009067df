import json
from typing import Any, Dict, Optional

from cumulus_api import schemas, translate
from cumulus_api.coordinator import RecordType
from cumulus_api.db import models
from cumulus_api.errors import ValidationError
from cumulus_api.messages import StatusReport, now_ms
from cumulus_api.records.base import ReportedRecordService
from cumulus_api.resolver import PDR_POLICY


def pdr_progress_percent(stats: schemas.PdrStats, status: schemas.Status) -> float:
    if stats.total == 0:
        return 100 if status.is_terminal else 0
    return (stats.completed + stats.failed) / stats.total * 100


def generate_pdr_record(report: StatusReport) -> Optional[Dict[str, Any]]:
    """Build the PDR record of a status report, None when it carries no PDR."""
    pdr = report.payload.get("pdr")
    if pdr is None:
        return None
    if not pdr.get("name"):
        raise ValidationError(f"Could not find name on PDR object {json.dumps(pdr)}")

    stats = schemas.PdrStats(
        completed=len(report.payload.get("completed") or []),
        failed=len(report.payload.get("failed") or []),
        processing=len(report.payload.get("running") or []),
    )
    now = now_ms()
    record = {
        "pdrName": pdr["name"],
        "collectionId": report.collectionId,
        "provider": report.providerId,
        "status": report.status.value,
        "progress": pdr_progress_percent(stats, report.status),
        "stats": stats.model_dump(),
        "execution": report.execution_url,
        "PANSent": pdr.get("PANSent"),
        "PANmessage": pdr.get("PANmessage"),
        "address": pdr.get("address"),
        "originalUrl": pdr.get("originalUrl"),
        "createdAt": report.startTime,
        "updatedAt": now,
        "timestamp": now,
        "duration": report.duration,
    }
    return {k: v for k, v in record.items() if v is not None}


class PdrRecordType(RecordType):
    name = "pdr"
    pg = models.pdrs
    key_map = {"pdrName": "name"}

    def to_relational(self, record, resolver):
        return translate.pdr_to_relational(record, resolver)

    def to_document(self, row):
        return translate.pdr_to_document(row)


class PdrService(ReportedRecordService):
    record_type = PdrRecordType()
    model = schemas.Pdr
    title = "PDR"
    policy = PDR_POLICY
