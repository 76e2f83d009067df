from cumulus_api import schemas, translate
from cumulus_api.coordinator import RecordType
from cumulus_api.db import models
from cumulus_api.records.base import RecordService


class RuleRecordType(RecordType):
    name = "rule"
    pg = models.rules
    key_map = {"name": "name"}

    def to_relational(self, record, resolver):
        return translate.rule_to_relational(record, resolver)

    def to_document(self, row):
        return translate.rule_to_document(row)


class RuleService(RecordService):
    record_type = RuleRecordType()
    model = schemas.Rule
    title = "Rule"
