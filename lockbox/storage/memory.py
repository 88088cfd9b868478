from __future__ import annotations

import io
import threading
from datetime import datetime, timezone
from typing import BinaryIO, Dict, List, Tuple

from lockbox.core.errors import ObjectNotFoundError
from lockbox.storage.backend import BackendStatus, ObjectInfo

# Chunk size for draining upload streams (1MB)
CHUNK_SIZE = 1024 * 1024


class MemoryObjectBackend:
    """
    In-process object backend for tests and throwaway deployments.

    The payload is buffered completely before the object is published, so a
    put() that fails mid-stream leaves nothing behind.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._objects: Dict[str, Tuple[bytes, ObjectInfo]] = {}

    def put(self, key: str, stream: BinaryIO, metadata: Dict[str, str]) -> ObjectInfo:
        buffer = io.BytesIO()
        while chunk := stream.read(CHUNK_SIZE):
            buffer.write(chunk)

        data = buffer.getvalue()
        info = ObjectInfo(
            key=key,
            size=len(data),
            created_at=datetime.now(timezone.utc),
            metadata=dict(metadata),
        )
        with self._lock:
            self._objects[key] = (data, info)
        return info

    def get(self, key: str) -> Tuple[BinaryIO, ObjectInfo]:
        with self._lock:
            entry = self._objects.get(key)
        if entry is None:
            raise ObjectNotFoundError(f"Object '{key}' not found", key=key)
        data, info = entry
        return io.BytesIO(data), info

    def info(self, key: str) -> ObjectInfo:
        return self.get(key)[1]

    def delete(self, key: str) -> None:
        with self._lock:
            if self._objects.pop(key, None) is None:
                raise ObjectNotFoundError(f"Object '{key}' not found", key=key)

    def list(self) -> List[ObjectInfo]:
        with self._lock:
            return [info for _, info in self._objects.values()]

    def status(self) -> BackendStatus:
        with self._lock:
            return BackendStatus(
                backend="memory",
                objects=len(self._objects),
                size=sum(info.size for _, info in self._objects.values()),
            )
