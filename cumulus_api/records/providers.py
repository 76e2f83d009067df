from cumulus_api import schemas, translate
from cumulus_api.coordinator import RecordType
from cumulus_api.db import models
from cumulus_api.records.base import RecordService


class ProviderRecordType(RecordType):
    name = "provider"
    pg = models.providers
    key_map = {"id": "name"}

    def to_relational(self, record, resolver):
        return translate.provider_to_relational(record, resolver)

    def to_document(self, row):
        return translate.provider_to_document(row)

    def find_dependents(self, session, row):
        return models.referencing_records(
            session, "provider_cumulus_id", row.cumulus_id
        )


class ProviderService(RecordService):
    record_type = ProviderRecordType()
    model = schemas.Provider
    title = "Provider"
