"""Moving a granule's files to new S3 locations.

Each matched file is moved in its own relational transaction: the file row
is pointed at the new location, then the object is moved, and a failed move
rolls the row back. Files move concurrently and independently; once all have
been attempted the granule document gets its whole file list rewritten once.
"""

import posixpath
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from cumulus_api.config import get_settings
from cumulus_api.coordinator import TransactionCoordinator
from cumulus_api.db import models
from cumulus_api.errors import (
    PartialMirrorFailure,
    PartialRelocationFailure,
    RecordDoesNotExist,
)
from cumulus_api.messages import now_ms
from cumulus_api.monitoring import count, logger, tracer
from cumulus_api.records.granules import GranuleRecordType
from cumulus_api.s3 import get_s3_client, move_object, object_exists, s3_join
from cumulus_api.schemas import upgrade_file
from cumulus_api.translate import file_to_relational

Record = Dict[str, Any]
ReconcileMetadata = Callable[[Record, List[Record]], Any]

GRANULE = GranuleRecordType()


@dataclass
class Destination:
    regex: str
    bucket: str
    filepath: Optional[str] = None


@dataclass
class MoveFileParams:
    file: Record
    source: Optional[Dict[str, str]] = None
    target: Optional[Dict[str, str]] = None

    def moved_file(self) -> Record:
        return {**self.file, "bucket": self.target["Bucket"], "key": self.target["Key"]}

    def to_dict(self) -> Record:
        return {"file": self.file, "source": self.source, "target": self.target}


@dataclass
class RelocationResult:
    updated_files: List[Record] = field(default_factory=list)
    errors: List[Record] = field(default_factory=list)
    mirror_error: Optional[PartialMirrorFailure] = None


def generate_move_file_params(
    files: List[Record], destinations: List[Destination]
) -> List[MoveFileParams]:
    """Pair every file with the first destination whose regex matches its name.

    Files matching no destination get no target and stay where they are.
    """
    move_params = []
    for file in files:
        file = upgrade_file(file)
        file_name = file.get("fileName") or posixpath.basename(file["key"])
        destination = next(
            (d for d in destinations if re.search(d.regex, file_name)), None
        )
        if destination is None:
            move_params.append(MoveFileParams(file))
            continue
        move_params.append(
            MoveFileParams(
                file,
                source={"Bucket": file["bucket"], "Key": file["key"]},
                target={
                    "Bucket": destination.bucket,
                    "Key": s3_join(destination.filepath, file_name)
                    if destination.filepath
                    else file_name,
                },
            )
        )
    return move_params


def get_files_existing_at_location(
    s3_client, granule: Record, destinations: List[Destination]
) -> List[Record]:
    """Files of the granule whose destination object already exists"""
    return [
        params.file
        for params in generate_move_file_params(granule.get("files") or [], destinations)
        if params.target
        and object_exists(s3_client, params.target["Bucket"], params.target["Key"])
    ]


class FileRelocator:
    def __init__(
        self,
        coordinator: TransactionCoordinator,
        s3_client=None,
        max_workers: Optional[int] = None,
    ):
        self.coordinator = coordinator
        self.s3_client = s3_client or get_s3_client()
        self.max_workers = max_workers or get_settings().relocation_concurrency

    def _granule_cumulus_id(self, granule: Record) -> Optional[int]:
        with self.coordinator.session_factory() as session:
            row = GRANULE.find_row(session, GRANULE.document_key(granule))
            return row.cumulus_id if row else None

    def _move_file(
        self, params: MoveFileParams, granule_cumulus_id: Optional[int]
    ) -> Record:
        if params.target is None:
            return params.file
        moved = params.moved_file()
        if granule_cumulus_id is None:
            move_object(
                self.s3_client,
                params.source["Bucket"],
                params.source["Key"],
                params.target["Bucket"],
                params.target["Key"],
            )
            return moved

        with self.coordinator.session_factory.begin() as session:
            values = file_to_relational(moved, granule_cumulus_id)
            source = {"bucket": params.source["Bucket"], "key": params.source["Key"]}
            row = models.files.find(session, source)
            if row is None:
                models.files.create(session, values)
            else:
                models.files.update(session, row, values)
            move_object(
                self.s3_client,
                params.source["Bucket"],
                params.source["Key"],
                params.target["Bucket"],
                params.target["Key"],
            )
        return moved

    @tracer.capture_method
    def move_granule_files_and_update_datastore(
        self, granule: Record, destinations: List[Destination]
    ) -> RelocationResult:
        granule_cumulus_id = self._granule_cumulus_id(granule)
        if granule_cumulus_id is None:
            logger.info(
                f"Granule {granule['granuleId']} has no relational record, "
                "updating the document store only"
            )

        move_params = generate_move_file_params(granule.get("files") or [], destinations)
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(self._move_file, params, granule_cumulus_id)
                for params in move_params
            ]

        result = RelocationResult()
        for params, future in zip(move_params, futures):
            try:
                result.updated_files.append(future.result())
            except Exception as e:
                logger.error(f"Failed to move file {params.to_dict()}: {e}")
                count("FileRelocationFailure")
                result.updated_files.append(params.file)
                result.errors.append({"moveParams": params.to_dict(), "reason": str(e)})

        result.mirror_error = self._write_document(granule, result.updated_files)
        return result

    def _current_granule(self, granule: Record) -> Record:
        try:
            return self.coordinator.read(GRANULE, GRANULE.document_key(granule))
        except RecordDoesNotExist:
            return granule

    def _write_document(
        self, granule: Record, files: List[Record]
    ) -> Optional[PartialMirrorFailure]:
        """Rewrite the granule document with its new file list."""
        try:
            document = {
                **self._current_granule(granule),
                "files": files,
                "updatedAt": now_ms(),
            }
            self.coordinator.document_store(GRANULE).write(document)
            if self.coordinator.index:
                self.coordinator.index.upsert(
                    GRANULE.name, granule["granuleId"], document
                )
        except Exception as e:
            failure = PartialMirrorFailure(GRANULE.name, granule["granuleId"], e)
            logger.exception(str(failure))
            count("PartialMirrorFailure")
            return failure
        return None

    def move_granule(
        self,
        granule: Record,
        destinations: List[Destination],
        reconcile_metadata: Optional[ReconcileMetadata] = None,
    ) -> RelocationResult:
        """Move the granule's files, then reconcile its catalog metadata.

        Raises `PartialRelocationFailure` after reconciliation when any file
        failed to move. A failed document write is reported on the result
        and on the raised error, the file moves stand.
        """
        logger.info(f"Moving granule {granule['granuleId']}")
        result = self.move_granule_files_and_update_datastore(granule, destinations)
        if reconcile_metadata:
            reconcile_metadata(granule, result.updated_files)
        if result.errors:
            logger.error(f"Granule {granule['granuleId']} failed to move")
            raise PartialRelocationFailure(
                granule, result.errors, result.updated_files, result.mirror_error
            )
        return result
