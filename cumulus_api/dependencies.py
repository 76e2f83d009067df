from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Optional

import boto3

from cumulus_api import records
from cumulus_api.config import Settings, get_settings
from cumulus_api.coordinator import TransactionCoordinator
from cumulus_api.db.database import create_db_engine, create_session_factory
from cumulus_api.search import SearchIndex
from cumulus_api.services import DocumentStore


def get_table(table_name: str):
    client = boto3.resource("dynamodb")
    return client.Table(table_name)


@dataclass
class Services:
    coordinator: TransactionCoordinator
    collections: records.CollectionService
    providers: records.ProviderService
    async_operations: records.AsyncOperationService
    rules: records.RuleService
    executions: records.ExecutionService
    granules: records.GranuleService
    pdrs: records.PdrService

    @classmethod
    def build(cls, coordinator: TransactionCoordinator) -> "Services":
        return cls(
            coordinator=coordinator,
            collections=records.CollectionService(coordinator),
            providers=records.ProviderService(coordinator),
            async_operations=records.AsyncOperationService(coordinator),
            rules=records.RuleService(coordinator),
            executions=records.ExecutionService(coordinator),
            granules=records.GranuleService(coordinator),
            pdrs=records.PdrService(coordinator),
        )


def get_document_stores(settings: Settings) -> Dict[str, DocumentStore]:
    tables = {
        records.CollectionService: settings.collections_table,
        records.ProviderService: settings.providers_table,
        records.AsyncOperationService: settings.async_operations_table,
        records.RuleService: settings.rules_table,
        records.ExecutionService: settings.executions_table,
        records.GranuleService: settings.granules_table,
        records.PdrService: settings.pdrs_table,
    }
    return {
        service.record_type.name: DocumentStore(
            get_table(table_name), service.record_type.document_key_fields
        )
        for service, table_name in tables.items()
    }


def build_services(
    settings: Settings, index: Optional[SearchIndex] = None
) -> Services:
    engine = create_db_engine(settings.load_database_url(), echo=settings.db_echo)
    coordinator = TransactionCoordinator(
        create_session_factory(engine), get_document_stores(settings), index=index
    )
    return Services.build(coordinator)


@lru_cache()
def get_services() -> Services:
    return build_services(get_settings())
