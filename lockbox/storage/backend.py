from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, BinaryIO, Dict, List, Protocol, Tuple, runtime_checkable


@dataclass(frozen=True)
class ObjectInfo:
    """Metadata the backend keeps for a committed object."""

    key: str
    size: int
    created_at: datetime
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class BackendStatus:
    backend: str
    objects: int
    size: int
    details: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class ObjectBackend(Protocol):
    """
    Durable object storage consumed by the gateway.

    Implementations must commit atomically: an object whose put() raised is
    never visible to get(), info() or list(). Missing keys raise
    ObjectNotFoundError.
    """

    def put(self, key: str, stream: BinaryIO, metadata: Dict[str, str]) -> ObjectInfo: ...

    def get(self, key: str) -> Tuple[BinaryIO, ObjectInfo]: ...

    def info(self, key: str) -> ObjectInfo: ...

    def delete(self, key: str) -> None: ...

    def list(self) -> List[ObjectInfo]: ...

    def status(self) -> BackendStatus: ...
