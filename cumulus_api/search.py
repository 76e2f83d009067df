"""Search index the coordinator mirrors committed records into."""

import abc
from typing import Any, Dict


class SearchIndex(abc.ABC):
    @abc.abstractmethod
    def upsert(self, record_type: str, identifier: str, document: Dict[str, Any]):
        ...

    @abc.abstractmethod
    def delete(self, record_type: str, identifier: str):
        ...
