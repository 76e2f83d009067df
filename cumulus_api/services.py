import decimal
import json
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Sequence

from boto3.dynamodb.types import DYNAMODB_CONTEXT

from cumulus_api.errors import RecordDoesNotExist

if TYPE_CHECKING:
    from mypy_boto3_dynamodb.service_resource import Table


DYNAMODB_CONTEXT.traps[decimal.Rounded] = 0


def to_dynamodb(record: Dict[str, Any]) -> Dict[str, Any]:
    """DynamoDB rejects floats, store them as Decimals"""
    return json.loads(json.dumps(record, default=str), parse_float=Decimal)


def from_dynamodb(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: from_dynamodb(v) for k, v in value.items()}
    if isinstance(value, (list, set)):
        return [from_dynamodb(v) for v in value]
    return value


class DocumentStore:
    def __init__(self, table: "Table", key_fields: Sequence[str]):
        self.table = table
        self.key_fields = tuple(key_fields)

    def key(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return {field: record[field] for field in self.key_fields}

    def write(self, record: Dict[str, Any]):
        self.table.put_item(Item=to_dynamodb(record))

    def fetch_one(self, key: Dict[str, Any]) -> Dict[str, Any]:
        response = self.table.get_item(Key=key)
        try:
            return from_dynamodb(response["Item"])
        except KeyError:
            raise RecordDoesNotExist(f"No record found for {key}")

    def exists(self, key: Dict[str, Any]) -> bool:
        return "Item" in self.table.get_item(Key=key)

    def update(self, key: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
        """Set `fields` on the item and return the item as updated."""
        names = {f"#f{i}": name for i, name in enumerate(fields)}
        values = {f":v{i}": value for i, value in enumerate(to_dynamodb(fields).values())}
        response = self.table.update_item(
            Key=key,
            UpdateExpression="SET "
            + ", ".join(f"#f{i} = :v{i}" for i in range(len(fields))),
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
            ReturnValues="ALL_NEW",
        )
        return from_dynamodb(response["Attributes"])

    def delete(self, key: Dict[str, Any]):
        self.table.delete_item(Key=key)
