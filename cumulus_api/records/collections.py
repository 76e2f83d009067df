from cumulus_api import schemas, translate
from cumulus_api.coordinator import RecordType
from cumulus_api.db import models
from cumulus_api.records.base import Identifier, Record, RecordService


class CollectionRecordType(RecordType):
    name = "collection"
    pg = models.collections
    key_map = {"name": "name", "version": "version"}

    def to_relational(self, record, resolver):
        return translate.collection_to_relational(record, resolver)

    def to_document(self, row):
        return translate.collection_to_document(row)

    def find_dependents(self, session, row):
        return models.referencing_records(
            session, "collection_cumulus_id", row.cumulus_id
        )


class CollectionService(RecordService):
    record_type = CollectionRecordType()
    model = schemas.Collection
    title = "Collection"

    def key(self, identifier: Identifier) -> Record:
        """Accepts a `name___version` collection id or a record."""
        if isinstance(identifier, str):
            name, version = schemas.deconstruct_collection_id(identifier)
            return {"name": name, "version": version}
        return super().key(identifier)
