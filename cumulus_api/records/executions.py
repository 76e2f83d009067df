from typing import Any, Dict

from cumulus_api import schemas, translate
from cumulus_api.coordinator import RecordType
from cumulus_api.db import models
from cumulus_api.messages import StatusReport, now_ms
from cumulus_api.records.base import ReportedRecordService
from cumulus_api.resolver import EXECUTION_POLICY


def generate_execution_record(report: StatusReport) -> Dict[str, Any]:
    """Build the execution record described by a status report."""
    now = now_ms()
    record = {
        "name": report.executionName,
        "arn": report.executionArn,
        "execution": report.execution_url,
        "parentArn": report.parentArn,
        "asyncOperationId": report.asyncOperationId,
        "cumulusVersion": report.cumulusVersion,
        "tasks": report.tasks,
        "error": report.error,
        "type": report.workflowName,
        "status": report.status.value,
        "collectionId": report.collectionId,
        "createdAt": report.startTime,
        "updatedAt": now,
        "timestamp": now,
        "duration": report.duration,
    }
    if report.status.is_terminal:
        record["finalPayload"] = report.payload
    else:
        record["originalPayload"] = report.payload
    return {k: v for k, v in record.items() if v is not None}


class ExecutionRecordType(RecordType):
    name = "execution"
    pg = models.executions
    key_map = {"arn": "arn"}

    def to_relational(self, record, resolver):
        return translate.execution_to_relational(record, resolver)

    def to_document(self, row):
        return translate.execution_to_document(row)


class ExecutionService(ReportedRecordService):
    record_type = ExecutionRecordType()
    model = schemas.Execution
    title = "Execution"
    policy = EXECUTION_POLICY
