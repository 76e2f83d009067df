"""Observability utils"""

from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.metrics import MetricUnit

logger: Logger = Logger(service="cumulus-api", namespace="cumulus")
metrics: Metrics = Metrics(namespace="cumulus")
metrics.set_default_dimensions(service="cumulus-api")
tracer: Tracer = Tracer(service="cumulus-api")


def count(name: str, value: int = 1) -> None:
    """Record a counter metric"""
    metrics.add_metric(name=name, unit=MetricUnit.Count, value=value)
