"""Errors raised by the persistence layer.

Each error carries the HTTP status code the API layer answers with.
"""

import json
from typing import Any, Dict, List, Optional, Sequence


class CumulusError(Exception):
    status_code = 500


class ValidationError(CumulusError):
    status_code = 400


class RecordDoesNotExist(CumulusError):
    status_code = 404


class ReferenceNotFoundError(ValidationError):
    """A required foreign reference could not be resolved."""

    def __init__(self, table: str, identifiers: Dict[str, Any]):
        self.table = table
        self.identifiers = identifiers
        super().__init__(
            f"Record in {table} with identifiers "
            f"{json.dumps(identifiers, default=str)} does not exist."
        )


class CollisionError(CumulusError):
    status_code = 409

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"A record already exists for {identifier}")


class AssociatedRecordError(CumulusError):
    """Delete blocked by records that still reference the target."""

    status_code = 409

    def __init__(self, record_type: str, dependent_type: str, dependents: Sequence[str]):
        self.record_type = record_type
        self.dependent_type = dependent_type
        self.dependents = list(dependents)
        message = f"Cannot delete {record_type} with associated {dependent_type}"
        if self.dependents:
            message += f": {', '.join(self.dependents)}"
        super().__init__(message)


class PartialMirrorFailure(CumulusError):
    """The relational write committed but the document or index mirror did not.

    Returned on a `WriteResult`, never raised by the coordinator.
    """

    def __init__(self, record_type: str, identifier: str, cause: Exception):
        self.record_type = record_type
        self.identifier = identifier
        self.cause = cause
        super().__init__(
            f"{record_type} {identifier} was written to the database but could "
            f"not be mirrored: {cause}"
        )


class PartialRelocationFailure(CumulusError):
    """One or more granule files failed to move.

    The files that did move are already persisted at their new location.
    """

    def __init__(
        self,
        granule: Dict[str, Any],
        errors: List[Dict[str, Any]],
        updated_files: Optional[List[Dict[str, Any]]] = None,
        mirror_error: Optional[PartialMirrorFailure] = None,
    ):
        self.granule = granule
        self.errors = errors
        self.updated_files = updated_files or []
        self.mirror_error = mirror_error
        super().__init__(
            json.dumps(
                {
                    "reason": "Failed to move granule",
                    "granule": granule,
                    "errors": errors,
                    "granuleFilesRecords": self.updated_files,
                    "mirrorError": str(mirror_error) if mirror_error else None,
                },
                default=str,
            )
        )
