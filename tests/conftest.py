"""
Test fixtures for the persistence layer.

DynamoDB and S3 are mocked with moto; the relational store is a SQLite
database file created per test.
"""

import os
from typing import Any, Dict, List, Tuple

import boto3
import pytest
from moto import mock_aws

from cumulus_api.coordinator import TransactionCoordinator
from cumulus_api.db.database import create_db_engine, create_session_factory, init_db
from cumulus_api.dependencies import Services
from cumulus_api.records import (
    AsyncOperationService,
    CollectionService,
    ExecutionService,
    GranuleService,
    PdrService,
    ProviderService,
    RuleService,
)
from cumulus_api.search import SearchIndex
from cumulus_api.services import DocumentStore
from tests import factories

RECORD_SERVICES = (
    CollectionService,
    ProviderService,
    AsyncOperationService,
    RuleService,
    ExecutionService,
    GranuleService,
    PdrService,
)


@pytest.fixture(autouse=True)
def test_environ():
    """
    Set up the test environment with mocked AWS credentials.
    """
    # Mocked AWS Credentials for moto (best practice recommendation from moto)
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_REGION"] = "us-west-2"
    os.environ["AWS_DEFAULT_REGION"] = "us-west-2"

    os.environ["POWERTOOLS_TRACE_DISABLED"] = "1"


class RecordingIndex(SearchIndex):
    """Keeps indexed documents in memory."""

    def __init__(self):
        self.documents: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.deleted: List[Tuple[str, str]] = []

    def upsert(self, record_type, identifier, document):
        self.documents[(record_type, identifier)] = document

    def delete(self, record_type, identifier):
        self.documents.pop((record_type, identifier), None)
        self.deleted.append((record_type, identifier))


def create_document_table(dynamodb, table_name: str, key_fields: Tuple[str, ...]):
    key_schema = [{"AttributeName": key_fields[0], "KeyType": "HASH"}]
    if len(key_fields) > 1:
        key_schema.append({"AttributeName": key_fields[1], "KeyType": "RANGE"})
    return dynamodb.create_table(
        TableName=table_name,
        KeySchema=key_schema,
        AttributeDefinitions=[
            {"AttributeName": field, "AttributeType": "S"} for field in key_fields
        ],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def aws():
    with mock_aws():
        yield


@pytest.fixture
def document_stores(aws) -> Dict[str, DocumentStore]:
    dynamodb = boto3.resource("dynamodb")
    stores = {}
    for service in RECORD_SERVICES:
        record_type = service.record_type
        table = create_document_table(
            dynamodb, f"{record_type.name}-table", record_type.document_key_fields
        )
        stores[record_type.name] = DocumentStore(table, record_type.document_key_fields)
    return stores


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'cumulus.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def search_index() -> RecordingIndex:
    return RecordingIndex()


@pytest.fixture
def coordinator(session_factory, document_stores, search_index):
    return TransactionCoordinator(session_factory, document_stores, index=search_index)


@pytest.fixture
def services(coordinator) -> Services:
    return Services.build(coordinator)


@pytest.fixture
def collection(services) -> Dict[str, Any]:
    return services.collections.create(factories.fake_collection()).record


@pytest.fixture
def collection_id(collection) -> str:
    return f"{collection['name']}___{collection['version']}"


@pytest.fixture
def provider(services) -> Dict[str, Any]:
    return services.providers.create(factories.fake_provider()).record


@pytest.fixture
def async_operation(services) -> Dict[str, Any]:
    return services.async_operations.create(factories.fake_async_operation()).record


@pytest.fixture
def s3_client(aws):
    client = boto3.client("s3")
    for bucket in ("source-bucket", "protected-bucket", "public-bucket"):
        client.create_bucket(
            Bucket=bucket,
            CreateBucketConfiguration={"LocationConstraint": "us-west-2"},
        )
    return client
