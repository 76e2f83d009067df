from cumulus_api.records.async_operations import AsyncOperationService
from cumulus_api.records.collections import CollectionService
from cumulus_api.records.executions import ExecutionService, generate_execution_record
from cumulus_api.records.granules import GranuleService, generate_granule_records
from cumulus_api.records.pdrs import PdrService, generate_pdr_record
from cumulus_api.records.providers import ProviderService
from cumulus_api.records.rules import RuleService

__all__ = [
    "AsyncOperationService",
    "CollectionService",
    "ExecutionService",
    "GranuleService",
    "PdrService",
    "ProviderService",
    "RuleService",
    "generate_execution_record",
    "generate_granule_records",
    "generate_pdr_record",
]
