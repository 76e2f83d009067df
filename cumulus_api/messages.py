"""Workflow status reports.

A report is read either from a Cumulus workflow message (`cumulus_meta`,
`meta` and `payload`) or from a Step Functions execution status-change event
wrapping one.
"""

import json
import os
import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from cumulus_api.errors import ValidationError
from cumulus_api.schemas import Status, construct_collection_id

DEFAULT_REGION = "us-east-1"

STEP_FUNCTIONS_STATUSES = {
    "RUNNING": Status.running,
    "SUCCEEDED": Status.completed,
    "FAILED": Status.failed,
    "ABORTED": Status.failed,
    "TIMED_OUT": Status.failed,
}


def now_ms() -> int:
    return int(time.time() * 1000)


def execution_arn(state_machine_arn: str, execution_name: str) -> str:
    return (
        state_machine_arn.replace("stateMachine", "execution", 1)
        + ":"
        + execution_name
    )


def execution_console_url(arn: str) -> str:
    parts = arn.split(":")
    region = (
        parts[3]
        if len(parts) > 3 and parts[3]
        else os.environ.get("AWS_REGION", DEFAULT_REGION)
    )
    return (
        f"https://console.aws.amazon.com/states/home?region={region}"
        f"#/executions/details/{arn}"
    )


def _message_error(message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    exception = message.get("exception")
    if not exception or exception == "None":
        return None
    if isinstance(exception, dict):
        return exception
    return {"Error": "Unknown Error", "Cause": str(exception)}


class StatusReport(BaseModel):
    """Workflow status of one execution, with the payload it carried."""

    executionArn: str
    executionName: str
    workflowName: Optional[str] = None
    startTime: Optional[int] = None
    stopTime: Optional[int] = None
    status: Status
    collectionId: Optional[str] = None
    providerId: Optional[str] = None
    parentArn: Optional[str] = None
    asyncOperationId: Optional[str] = None
    cumulusVersion: Optional[str] = None
    tasks: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    originalMessage: Optional[Dict[str, Any]] = None

    @property
    def execution_url(self) -> str:
        return execution_console_url(self.executionArn)

    @property
    def duration(self) -> float:
        """Seconds since the workflow started, up to its stop time when known"""
        if self.startTime is None:
            return 0
        return ((self.stopTime or now_ms()) - self.startTime) / 1000

    @classmethod
    def from_cumulus_message(
        cls, message: Dict[str, Any], status: Optional[Status] = None
    ) -> "StatusReport":
        cumulus_meta = message.get("cumulus_meta") or {}
        meta = message.get("meta") or {}

        state_machine = cumulus_meta.get("state_machine")
        execution_name = cumulus_meta.get("execution_name")
        if not state_machine or not execution_name:
            raise ValidationError(
                "Workflow message is missing cumulus_meta.state_machine "
                "or cumulus_meta.execution_name"
            )

        collection = meta.get("collection") or {}
        collection_id = (
            construct_collection_id(collection["name"], collection["version"])
            if collection.get("name") and collection.get("version")
            else None
        )

        return cls(
            executionArn=execution_arn(state_machine, execution_name),
            executionName=execution_name,
            workflowName=meta.get("workflow_name"),
            startTime=cumulus_meta.get("workflow_start_time"),
            stopTime=cumulus_meta.get("workflow_stop_time"),
            status=status or meta.get("status") or Status.running,
            collectionId=collection_id,
            providerId=(meta.get("provider") or {}).get("id"),
            parentArn=cumulus_meta.get("parentExecutionArn"),
            asyncOperationId=cumulus_meta.get("asyncOperationId"),
            cumulusVersion=cumulus_meta.get("cumulus_version")
            or meta.get("cumulus_version"),
            tasks=meta.get("workflow_tasks"),
            error=_message_error(message),
            payload=message.get("payload") or {},
            originalMessage=message,
        )

    @classmethod
    def from_step_functions_event(cls, event: Dict[str, Any]) -> "StatusReport":
        """Parse an EventBridge "Step Functions Execution Status Change" event."""
        detail = event["detail"]
        status = STEP_FUNCTIONS_STATUSES.get(detail.get("status"))
        if status is None:
            raise ValidationError(f"Unknown execution status {detail.get('status')}")

        # a finished execution carries its final message as output
        body = detail.get("output") or detail.get("input")
        if not body:
            raise ValidationError(
                f"Execution {detail.get('executionArn')} has no workflow message"
            )
        message = json.loads(body) if isinstance(body, str) else body
        message.setdefault("cumulus_meta", {}).setdefault(
            "workflow_stop_time", detail.get("stopDate")
        )
        return cls.from_cumulus_message(message, status=status)
