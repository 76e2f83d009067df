"""
Entrypoint for Lambda execution.

Consumes SQS batches whose bodies are Cumulus workflow messages or Step
Functions execution status-change events, and writes the execution, PDR and
granules each one reports on. Failed records are returned as partial batch
failures so SQS retries only those.
"""

import json
from typing import TYPE_CHECKING, Any, Dict

from aws_lambda_powertools.utilities.batch import (
    BatchProcessor,
    EventType,
    process_partial_response,
)
from aws_lambda_powertools.utilities.data_classes.sqs_event import SQSRecord

from cumulus_api.dependencies import Services, get_services
from cumulus_api.messages import StatusReport
from cumulus_api.monitoring import logger, metrics, tracer
from cumulus_api.records import (
    generate_execution_record,
    generate_granule_records,
    generate_pdr_record,
)

if TYPE_CHECKING:
    from aws_lambda_typing import context as context_

processor = BatchProcessor(event_type=EventType.SQS)


def parse_report(message: Dict[str, Any]) -> StatusReport:
    if message.get("source") == "aws.states":
        return StatusReport.from_step_functions_event(message)
    return StatusReport.from_cumulus_message(message)


def write_records(message: Dict[str, Any], services: Services) -> StatusReport:
    """Store the execution, then the PDR, then the granules of one message."""
    report = parse_report(message)
    logger.info(f"Writing records for execution {report.executionArn}")

    services.executions.store_report(generate_execution_record(report))

    pdr = generate_pdr_record(report)
    if pdr is not None:
        services.pdrs.store_report(pdr)

    for granule in generate_granule_records(report):
        services.granules.store_report(granule)
    return report


@tracer.capture_method
def record_handler(record: SQSRecord):
    write_records(json.loads(record.body), get_services())


def handler(event: Dict[str, Any], context: "context_.Context"):
    return process_partial_response(
        event=event,
        record_handler=record_handler,
        processor=processor,
        context=context,
    )


# Add tracing
handler = tracer.capture_lambda_handler(handler)
# Add logging
handler = logger.inject_lambda_context(handler, clear_state=True)
# Add metrics last to properly flush metrics.
handler = metrics.log_metrics(handler, capture_cold_start_metric=True)
