"""Service settings."""

import base64
import json
from functools import lru_cache
from typing import Optional

import boto3
from pydantic import Field
from pydantic_settings import BaseSettings


@lru_cache()
def get_secret_dict(secret_name: str):
    """Retrieve secrets from AWS Secrets Manager

    Args:
        secret_name (str): name of aws secrets manager secret containing database connection secrets

    Returns:
        secrets (dict): decrypted secrets in dict
    """

    # Create a Secrets Manager client
    session = boto3.session.Session()
    client = session.client(service_name="secretsmanager")

    get_secret_value_response = client.get_secret_value(SecretId=secret_name)

    if "SecretString" in get_secret_value_response:
        return json.loads(get_secret_value_response["SecretString"])
    else:
        return json.loads(base64.b64decode(get_secret_value_response["SecretBinary"]))


class Settings(BaseSettings):
    stack_name: str = Field("cumulus", description="Name of the deployed stack")
    stage: Optional[str] = Field(None, description="Deployment stage")
    system_bucket: Optional[str] = Field(
        None, description="Bucket holding stack configuration"
    )

    collections_table: str = "CollectionsTable"
    providers_table: str = "ProvidersTable"
    async_operations_table: str = "AsyncOperationsTable"
    rules_table: str = "RulesTable"
    executions_table: str = "ExecutionsTable"
    granules_table: str = "GranulesTable"
    pdrs_table: str = "PdrsTable"

    database_url: Optional[str] = Field(
        None, description="SQLAlchemy URL of the relational store"
    )
    db_secret_arn: Optional[str] = Field(
        None,
        description="ARN of an AWS secret holding database connection parameters",
    )
    db_echo: bool = False

    relocation_concurrency: int = Field(
        10, ge=1, description="Number of granule files moved in parallel"
    )

    def load_database_url(self) -> str:
        """Build the database URL, reading the AWS secret if no URL is set"""
        if self.database_url:
            return self.database_url
        if self.db_secret_arn:
            secret = get_secret_dict(self.db_secret_arn)
            return (
                f"postgresql+psycopg://{secret['username']}:{secret['password']}"
                f"@{secret['host']}:{secret['port']}/{secret['dbname']}"
            )
        raise ValueError("One of DATABASE_URL or DB_SECRET_ARN must be set")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
