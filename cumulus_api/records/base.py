"""API surface shared by every entity service."""

from typing import Any, Dict, Type, Union

from cumulus_api.coordinator import (
    Operation,
    RecordType,
    TransactionCoordinator,
    WriteResult,
)
from cumulus_api.errors import CollisionError, RecordDoesNotExist, ValidationError
from cumulus_api.messages import now_ms
from cumulus_api.monitoring import count, logger
from cumulus_api.resolver import ConditionalUpdateResolver, UpdatePolicy
from cumulus_api.schemas import Document, validate_document

Record = Dict[str, Any]
Identifier = Union[str, Record]


class RecordService:
    record_type: RecordType
    model: Type[Document]
    title: str

    def __init__(self, coordinator: TransactionCoordinator):
        self.coordinator = coordinator

    @property
    def documents(self):
        return self.coordinator.document_store(self.record_type)

    def key(self, identifier: Identifier) -> Record:
        if isinstance(identifier, dict):
            return self.record_type.document_key(identifier)
        (field,) = self.record_type.document_key_fields
        return {field: identifier}

    def validate(self, record: Record) -> Record:
        return validate_document(self.model, record).document()

    def get(self, identifier: Identifier) -> Record:
        return self.coordinator.read(self.record_type, self.key(identifier))

    def exists(self, identifier: Identifier) -> bool:
        try:
            self.get(identifier)
        except RecordDoesNotExist:
            return False
        return True

    def create(self, record: Record) -> WriteResult:
        now = now_ms()
        record = self.validate({**record, "createdAt": now, "updatedAt": now})
        key = self.record_type.document_key(record)
        if self.documents.exists(key):
            raise CollisionError(self.record_type.identifier(key))
        return self.coordinator.write(Operation.create, self.record_type, record)

    def update(self, identifier: Identifier, partial: Record) -> WriteResult:
        """Merge `partial` over the stored record."""
        key = self.key(identifier)
        for field, value in key.items():
            if field in partial and partial[field] != value:
                raise ValidationError(
                    f"Expected {self.record_type.name} {field} to be '{value}', "
                    f"but found '{partial[field]}' in payload"
                )
        try:
            current = self.get(key)
        except RecordDoesNotExist:
            raise RecordDoesNotExist(
                f"{self.title} '{self.record_type.identifier(key)}' not found"
            )
        record = self.validate(
            {
                **current,
                **partial,
                **key,
                "createdAt": current.get("createdAt", now_ms()),
                "updatedAt": now_ms(),
            }
        )
        return self.coordinator.write(Operation.update, self.record_type, record)

    def delete(self, identifier: Identifier) -> WriteResult:
        key = self.key(identifier)
        if not self.exists(key):
            raise RecordDoesNotExist(
                f"{self.title} '{self.record_type.identifier(key)}' not found"
            )
        return self.coordinator.write(Operation.delete, self.record_type, key)


class ReportedRecordService(RecordService):
    """Entities also written from workflow status reports."""

    policy: UpdatePolicy

    def store_report(self, record: Record) -> WriteResult:
        """Write a record generated from a status report, unless a more
        authoritative report already landed.
        """
        record = self.validate(record)
        key = self.record_type.document_key(record)
        try:
            current = self.coordinator.read(self.record_type, key)
        except RecordDoesNotExist:
            current = None

        resolution = ConditionalUpdateResolver(self.policy).resolve(current, record)
        if not resolution.apply:
            logger.info(
                f"Skipping {self.record_type.name} "
                f"{self.record_type.identifier(key)}: {resolution.outcome.value}"
            )
            count("StaleUpdateRejected")
            return WriteResult(
                Operation.upsert,
                resolution.record,
                applied=False,
                outcome=resolution.outcome.value,
            )

        result = self.coordinator.write(
            Operation.upsert, self.record_type, self.validate(resolution.record)
        )
        result.outcome = resolution.outcome.value
        return result
