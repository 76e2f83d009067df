"""Document models, the camelCase shape records take in DynamoDB and the API."""

import enum
import posixpath
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cumulus_api.errors import ValidationError
from cumulus_api.s3 import parse_s3_uri
from cumulus_api.timestamps import normalize_iso


class Status(str, enum.Enum):
    @classmethod
    def _missing_(cls, value):
        for member in cls:
            if isinstance(value, str) and member.value == value.lower():
                return member
        return None

    running = "running"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not Status.running


def is_terminal(status: Any) -> bool:
    return Status(status).is_terminal


def construct_collection_id(name: str, version: str) -> str:
    return f"{name}___{version}"


def deconstruct_collection_id(collection_id: str) -> Tuple[str, str]:
    parts = collection_id.split("___")
    if len(parts) != 2 or not all(parts):
        raise ValidationError(f"Invalid collectionId: {collection_id}")
    return parts[0], parts[1]


class FileShape(str, enum.Enum):
    legacy = "legacy"
    current = "current"


LEGACY_FILE_FIELDS = ("filename", "filepath", "fileSize", "checksumValue")
_DROPPED_LEGACY_FIELDS = {
    "filename",
    "filepath",
    "fileSize",
    "checksumValue",
    "name",
    "path",
    "url_path",
    "duplicate_found",
}


def file_shape(record: Dict[str, Any]) -> FileShape:
    if any(field in record for field in LEGACY_FILE_FIELDS):
        return FileShape.legacy
    if "name" in record and "key" not in record:
        return FileShape.legacy
    return FileShape.current


def _upgrade_legacy_file(record: Dict[str, Any]) -> Dict[str, Any]:
    bucket = record.get("bucket")
    key = record.get("filepath") or record.get("key")
    if record.get("filename") and not (bucket and key):
        uri_bucket, uri_key = parse_s3_uri(record["filename"])
        bucket = bucket or uri_bucket
        key = key or uri_key

    upgraded = {k: v for k, v in record.items() if k not in _DROPPED_LEGACY_FIELDS}
    upgraded.update(
        bucket=bucket,
        key=key,
        fileName=record.get("name")
        or record.get("fileName")
        or (posixpath.basename(key) if key else None),
        checksum=record.get("checksumValue", record.get("checksum")),
        size=record.get("fileSize", record.get("size")),
    )
    return {k: v for k, v in upgraded.items() if v is not None}


_FILE_UPGRADES: Dict[FileShape, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    FileShape.legacy: _upgrade_legacy_file,
    FileShape.current: dict,
}


def upgrade_file(record: Dict[str, Any]) -> Dict[str, Any]:
    """Return a granule file in the current schema, whatever shape it was stored in."""
    return _FILE_UPGRADES[file_shape(record)](record)


class Document(BaseModel):
    model_config = ConfigDict(extra="allow")

    def document(self) -> Dict[str, Any]:
        """JSON-friendly serialization with unset values dropped"""
        return self.model_dump(mode="json", exclude_none=True)


DocumentT = TypeVar("DocumentT", bound=Document)


def validate_document(model: Type[DocumentT], record: Dict[str, Any]) -> DocumentT:
    try:
        return model.model_validate(record)
    except pydantic.ValidationError as e:
        messages = []
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"])
            if error["type"] == "missing":
                messages.append(f"Field {field} is missing")
            else:
                messages.append(f"Field {field}: {error['msg']}")
        raise ValidationError("; ".join(messages)) from e


class File(Document):
    bucket: Optional[str] = None
    key: Optional[str] = None
    fileName: Optional[str] = None
    checksumType: Optional[str] = None
    checksum: Optional[str] = None
    size: Optional[int] = None
    type: Optional[str] = None
    source: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def upgrade_legacy_shape(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return upgrade_file(data)
        return data


class Granule(Document):
    granuleId: str = Field(..., description="ID of the granule")
    collectionId: str = Field(..., description="name___version of the collection")
    status: Status
    execution: Optional[str] = Field(None, description="URL of the last execution")
    files: Optional[List[File]] = None
    published: Optional[bool] = None
    cmrLink: Optional[str] = None
    pdrName: Optional[str] = None
    provider: Optional[str] = None
    error: Optional[Dict[str, Any]] = None
    productVolume: Optional[int] = None
    duration: Optional[float] = None
    timeToPreprocess: Optional[float] = None
    timeToArchive: Optional[float] = None
    beginningDateTime: Optional[str] = None
    endingDateTime: Optional[str] = None
    productionDateTime: Optional[str] = None
    lastUpdateDateTime: Optional[str] = None
    processingStartDateTime: Optional[str] = None
    processingEndDateTime: Optional[str] = None
    queryFields: Optional[Dict[str, Any]] = None
    createdAt: Optional[int] = None
    updatedAt: Optional[int] = None
    timestamp: Optional[int] = None

    @field_validator(
        "beginningDateTime",
        "endingDateTime",
        "productionDateTime",
        "lastUpdateDateTime",
        "processingStartDateTime",
        "processingEndDateTime",
    )
    @classmethod
    def normalize_datetime(cls, value: Optional[str]) -> Optional[str]:
        return normalize_iso(value)


class Execution(Document):
    arn: str = Field(..., description="ARN of the execution")
    name: Optional[str] = None
    status: Status
    type: Optional[str] = Field(None, description="Workflow name")
    execution: Optional[str] = Field(None, description="Console URL of the execution")
    parentArn: Optional[str] = None
    asyncOperationId: Optional[str] = None
    collectionId: Optional[str] = None
    cumulusVersion: Optional[str] = None
    error: Optional[Dict[str, Any]] = None
    tasks: Optional[Dict[str, Any]] = None
    originalPayload: Optional[Dict[str, Any]] = None
    finalPayload: Optional[Dict[str, Any]] = None
    duration: Optional[float] = None
    createdAt: Optional[int] = None
    updatedAt: Optional[int] = None
    timestamp: Optional[int] = None


class PdrStats(BaseModel):
    completed: int = 0
    failed: int = 0
    processing: int = 0
    total: int = 0

    @model_validator(mode="after")
    def compute_total(self) -> "PdrStats":
        self.total = self.completed + self.failed + self.processing
        return self


class Pdr(Document):
    pdrName: str = Field(..., description="Name of the PDR")
    collectionId: str
    provider: str
    status: Status
    stats: Optional[PdrStats] = None
    progress: Optional[float] = None
    execution: Optional[str] = None
    PANSent: Optional[bool] = None
    PANmessage: Optional[str] = None
    address: Optional[str] = None
    originalUrl: Optional[str] = None
    duration: Optional[float] = None
    createdAt: Optional[int] = None
    updatedAt: Optional[int] = None
    timestamp: Optional[int] = None


class Collection(Document):
    name: str
    version: str
    process: Optional[str] = None
    url_path: Optional[str] = None
    duplicateHandling: Optional[str] = None
    granuleId: Optional[str] = Field(None, description="Granule ID validation regex")
    granuleIdExtraction: Optional[str] = None
    sampleFileName: Optional[str] = None
    files: List[Dict[str, Any]] = Field(default_factory=list)
    meta: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    createdAt: Optional[int] = None
    updatedAt: Optional[int] = None


class Provider(Document):
    id: str
    protocol: str = "s3"
    host: str
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None
    globalConnectionLimit: Optional[int] = None
    privateKey: Optional[str] = None
    cmKeyId: Optional[str] = None
    certificateUri: Optional[str] = None
    createdAt: Optional[int] = None
    updatedAt: Optional[int] = None

    @field_validator("host")
    @classmethod
    def is_bare_host(cls, host: str) -> str:
        if "://" in host or "/" in host:
            raise ValueError(f"Provider host '{host}' must not include a protocol or path")
        return host


class AsyncOperation(Document):
    id: str
    description: Optional[str] = None
    operationType: Optional[str] = None
    status: str = "RUNNING"
    output: Optional[Any] = None
    taskArn: Optional[str] = None
    createdAt: Optional[int] = None
    updatedAt: Optional[int] = None


class RuleTrigger(BaseModel):
    type: str
    value: Optional[str] = None
    arn: Optional[str] = None
    logEventArn: Optional[str] = None


class CollectionReference(BaseModel):
    name: str
    version: str


class Rule(Document):
    name: str
    workflow: str
    rule: RuleTrigger
    state: str = "ENABLED"
    collection: Optional[CollectionReference] = None
    provider: Optional[str] = None
    executionNamePrefix: Optional[str] = None
    queueUrl: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    meta: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    createdAt: Optional[int] = None
    updatedAt: Optional[int] = None
