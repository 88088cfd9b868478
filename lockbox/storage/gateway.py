"""
Object gateway: the only component that talks to the object backend.

Translates upload/list/fetch/remove requests into backend calls, enforces
the upload size ceiling and bounds every backend call with a timeout.
"""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, Callable, Iterator, List, Tuple

import filetype

from lockbox.core.errors import (
    BackendReadError,
    BackendWriteError,
    InvalidKeyError,
    ObjectNotFoundError,
    PayloadTooLargeError,
)
from lockbox.core.logger import get_logger
from lockbox.storage.backend import BackendStatus, ObjectBackend, ObjectInfo
from lockbox.storage.keys import UNNAMED_FILE, is_valid_key, make_key

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# filetype needs the first 261 bytes to recognise every format it knows
SNIFF_BYTES = 512

# Chunk size for streaming downloads (1MB)
CHUNK_SIZE = 1024 * 1024

# Default names for uploads that arrive without a filename, by upload type
DEFAULT_NAMES = {
    "text": "text.txt",
    "url": "url.txt",
}

KIND_CONTENT_TYPES = {
    "text": "text/plain",
    "url": "text/uri-list",
}


@dataclass(frozen=True)
class StoredObjectRef:
    key: str
    original_name: str
    size: int
    content_type: str
    created_at: datetime

    @classmethod
    def from_info(cls, info: ObjectInfo) -> "StoredObjectRef":
        return cls(
            key=info.key,
            original_name=info.metadata.get("original_name", info.key),
            size=info.size,
            content_type=info.metadata.get("content_type", DEFAULT_CONTENT_TYPE),
            created_at=info.created_at,
        )


class UploadAborted(Exception):
    """Raised inside the backend's read loop when the gateway gave up on a write."""


class BoundedReader:
    """
    File-like wrapper handed to the backend during put().

    Raises PayloadTooLargeError as soon as more than *limit* bytes have been
    read, and UploadAborted once cancel() was called, so the backend stops
    before committing anything.
    """

    def __init__(self, stream: BinaryIO, limit: int, head: bytes = b""):
        self._stream = stream
        self._limit = limit
        self._head = head
        self._cancelled = threading.Event()
        self.bytes_read = 0

    def cancel(self) -> None:
        self._cancelled.set()

    def read(self, size: int = -1) -> bytes:
        if self._cancelled.is_set():
            raise UploadAborted()

        if self._head:
            if size is None or size < 0:
                chunk = self._head + self._stream.read()
                self._head = b""
            else:
                chunk, self._head = self._head[:size], self._head[size:]
        else:
            chunk = self._stream.read(size)

        self.bytes_read += len(chunk)
        if self.bytes_read > self._limit:
            raise PayloadTooLargeError(self._limit)
        return chunk


def detect_content_type(head: bytes, declared: str | None, kind: str) -> str:
    """Prefer magic bytes, then the client's declared type, then a default for the upload type."""
    if head:
        guess = filetype.guess(head)
        if guess is not None:
            return guess.mime
    if declared and declared != DEFAULT_CONTENT_TYPE:
        return declared
    return KIND_CONTENT_TYPES.get(kind, DEFAULT_CONTENT_TYPE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ObjectGateway:
    def __init__(
        self,
        backend: ObjectBackend,
        max_upload_bytes: int,
        timeout: float = 30.0,
        clock: Callable[[], datetime] = _utcnow,
        max_workers: int = 16,
    ):
        self.backend = backend
        self.max_upload_bytes = max_upload_bytes
        self.timeout = timeout
        self._clock = clock
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="backend")
        self._key_lock = threading.Lock()
        self._last_key_second = 0

    def _key_time(self, now: datetime | None) -> datetime:
        # Never let the key timestamp go backwards, even if the wall clock does
        seconds = int((now or self._clock()).timestamp())
        with self._key_lock:
            seconds = max(seconds, self._last_key_second)
            self._last_key_second = seconds
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    def upload(
        self,
        stream: BinaryIO,
        original_name: str | None,
        declared_content_type: str | None = None,
        kind: str = "file",
        now: datetime | None = None,
    ) -> StoredObjectRef:
        """
        Store a new object under a freshly generated key.

        Raises:
            PayloadTooLargeError: If the payload exceeds max_upload_bytes
            BackendWriteError: If the backend fails or times out; nothing is stored
        """
        name = original_name or DEFAULT_NAMES.get(kind, UNNAMED_FILE)
        key = make_key(name, self._key_time(now))
        if not is_valid_key(key):
            raise InvalidKeyError(f"Generated key violates key charset: {key!r}")

        head = stream.read(SNIFF_BYTES)
        content_type = detect_content_type(head, declared_content_type, kind)
        reader = BoundedReader(stream, self.max_upload_bytes, head=head)
        metadata = {
            "original_name": name,
            "content_type": content_type,
            "kind": kind,
        }

        future = self._executor.submit(self.backend.put, key, reader, metadata)
        try:
            info = future.result(timeout=self.timeout)
        except FutureTimeoutError:
            reader.cancel()
            if not future.cancel():
                # Already running; undo the object if the backend commits it anyway
                future.add_done_callback(lambda done: self._discard_abandoned(done, key))
            logger.error(f"Backend write timed out for key {key} after {self.timeout}s")
            raise BackendWriteError("Backend write timed out", key=key)
        except PayloadTooLargeError:
            logger.warning(f"Upload rejected, exceeds {self.max_upload_bytes} bytes: {key}")
            raise
        except Exception as e:
            logger.error(f"Backend write failed for key {key}: {e.__class__.__name__}: {e}")
            raise BackendWriteError("Backend write failed", key=key) from e

        logger.info(f"Stored object {key} ({info.size} bytes, {content_type})")
        return StoredObjectRef.from_info(info)

    def _discard_abandoned(self, future, key: str) -> None:
        """Delete an object whose write finished after the caller was told it failed."""
        if future.cancelled() or future.exception() is not None:
            return
        try:
            self.backend.delete(key)
        except ObjectNotFoundError:
            return
        except Exception as e:
            logger.error(f"Failed to discard abandoned object {key}: {e.__class__.__name__}: {e}")
            return
        logger.warning(f"Discarded object {key} committed after its write timed out")

    def list(self) -> List[StoredObjectRef]:
        """List stored objects in whatever order the backend returns them."""
        infos = self._read(self.backend.list, None)
        return [StoredObjectRef.from_info(info) for info in infos]

    def fetch(self, key: str) -> Tuple[Iterator[bytes], StoredObjectRef]:
        """
        Open an object for streaming.

        Raises:
            ObjectNotFoundError: If the key does not exist
            BackendReadError: If the backend fails or times out
        """
        if not is_valid_key(key):
            raise ObjectNotFoundError(f"Object '{key}' not found", key=key)
        stream, info = self._read(self.backend.get, key)
        return self._iter_chunks(stream, key), StoredObjectRef.from_info(info)

    def _iter_chunks(self, stream: BinaryIO, key: str) -> Iterator[bytes]:
        """Yield an object's bytes; every read is bounded by the backend timeout."""
        try:
            while True:
                try:
                    chunk = self._executor.submit(stream.read, CHUNK_SIZE).result(timeout=self.timeout)
                except FutureTimeoutError:
                    logger.error(f"Backend read timed out while streaming key {key}")
                    raise BackendReadError("Backend read timed out", key=key)
                except Exception as e:
                    logger.error(f"Backend read failed while streaming key {key}: {e.__class__.__name__}: {e}")
                    raise BackendReadError("Backend read failed", key=key) from e
                if not chunk:
                    return
                yield chunk
        finally:
            stream.close()

    def remove(self, key: str) -> None:
        """
        Delete an object. Removing a key that no longer exists is an error.

        Raises:
            ObjectNotFoundError: If the key does not exist
            BackendWriteError: If the backend fails or times out
        """
        if not is_valid_key(key):
            raise ObjectNotFoundError(f"Object '{key}' not found", key=key)

        future = self._executor.submit(self.backend.delete, key)
        try:
            future.result(timeout=self.timeout)
        except FutureTimeoutError:
            logger.error(f"Backend delete timed out for key {key}")
            raise BackendWriteError("Backend delete timed out", key=key)
        except ObjectNotFoundError:
            raise
        except Exception as e:
            logger.error(f"Backend delete failed for key {key}: {e.__class__.__name__}: {e}")
            raise BackendWriteError("Backend delete failed", key=key) from e

        logger.info(f"Deleted object {key}")

    def status(self) -> BackendStatus:
        return self._read(self.backend.status, None)

    def _read(self, fn, key):
        future = self._executor.submit(fn) if key is None else self._executor.submit(fn, key)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError:
            logger.error(f"Backend read timed out ({fn.__name__}, key={key})")
            raise BackendReadError("Backend read timed out", key=key)
        except ObjectNotFoundError:
            raise
        except Exception as e:
            logger.error(f"Backend read failed ({fn.__name__}, key={key}): {e.__class__.__name__}: {e}")
            raise BackendReadError("Backend read failed", key=key) from e

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
