from cumulus_api import schemas, translate
from cumulus_api.coordinator import RecordType
from cumulus_api.db import models
from cumulus_api.records.base import RecordService


class AsyncOperationRecordType(RecordType):
    name = "asyncOperation"
    pg = models.async_operations
    key_map = {"id": "id"}

    def to_relational(self, record, resolver):
        return translate.async_operation_to_relational(record, resolver)

    def to_document(self, row):
        return translate.async_operation_to_document(row)

    def find_dependents(self, session, row):
        return models.referencing_records(
            session, "async_operation_cumulus_id", row.cumulus_id
        )


class AsyncOperationService(RecordService):
    record_type = AsyncOperationRecordType()
    model = schemas.AsyncOperation
    title = "Async operation"
