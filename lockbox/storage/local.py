from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Dict, List, Tuple

from lockbox.core.errors import ObjectNotFoundError
from lockbox.core.logger import get_logger
from lockbox.storage.backend import BackendStatus, ObjectInfo
from lockbox.storage.keys import is_valid_key

logger = get_logger(__name__)

# Chunk size for streaming uploads (1MB)
CHUNK_SIZE = 1024 * 1024


class LocalObjectBackend:
    """
    Object backend on a local directory.

    Layout::

        <root>/data/<key>        object bytes
        <root>/meta/<key>.json   size, created_at, metadata

    Bytes are streamed to a temp file and renamed into place; the metadata
    file is renamed last and is the commit point, so an interrupted put()
    never produces a listed object.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self._data_dir = self.root / "data"
        self._meta_dir = self.root / "meta"
        self._tmp_dir = self.root / "tmp"
        for directory in (self._data_dir, self._meta_dir, self._tmp_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def _paths(self, key: str) -> Tuple[Path, Path]:
        if not is_valid_key(key):
            raise ObjectNotFoundError(f"Object '{key}' not found", key=key)
        return self._data_dir / key, self._meta_dir / f"{key}.json"

    def put(self, key: str, stream: BinaryIO, metadata: Dict[str, str]) -> ObjectInfo:
        if not is_valid_key(key):
            raise ValueError(f"Refusing to store invalid key: {key!r}")
        data_path, meta_path = self._paths(key)

        data_fd, data_tmp = tempfile.mkstemp(dir=self._tmp_dir, prefix="put-")
        meta_tmp = None
        total_size = 0
        try:
            with os.fdopen(data_fd, "wb") as f:
                while chunk := stream.read(CHUNK_SIZE):
                    total_size += len(chunk)
                    f.write(chunk)
                f.flush()
                os.fsync(f.fileno())

            info = ObjectInfo(
                key=key,
                size=total_size,
                created_at=datetime.now(timezone.utc),
                metadata=dict(metadata),
            )
            meta_fd, meta_tmp = tempfile.mkstemp(dir=self._tmp_dir, prefix="meta-")
            with os.fdopen(meta_fd, "w", encoding="utf-8") as f:
                json.dump(_info_to_dict(info), f)

            os.replace(data_tmp, data_path)
            os.replace(meta_tmp, meta_path)
        except BaseException:
            # Clean up partial files; nothing was committed
            Path(data_tmp).unlink(missing_ok=True)
            if meta_tmp:
                Path(meta_tmp).unlink(missing_ok=True)
            raise

        return info

    def get(self, key: str) -> Tuple[BinaryIO, ObjectInfo]:
        info = self.info(key)
        data_path, _ = self._paths(key)
        try:
            return open(data_path, "rb"), info
        except FileNotFoundError:
            # Deleted between the metadata read and the open
            raise ObjectNotFoundError(f"Object '{key}' not found", key=key)

    def info(self, key: str) -> ObjectInfo:
        _, meta_path = self._paths(key)
        try:
            with open(meta_path, encoding="utf-8") as f:
                return _info_from_dict(json.load(f))
        except FileNotFoundError:
            raise ObjectNotFoundError(f"Object '{key}' not found", key=key)

    def delete(self, key: str) -> None:
        data_path, meta_path = self._paths(key)
        try:
            # Removing the metadata un-publishes the object
            meta_path.unlink()
        except FileNotFoundError:
            raise ObjectNotFoundError(f"Object '{key}' not found", key=key)
        data_path.unlink(missing_ok=True)

    def list(self) -> List[ObjectInfo]:
        objects = []
        for meta_path in self._meta_dir.glob("*.json"):
            try:
                with open(meta_path, encoding="utf-8") as f:
                    objects.append(_info_from_dict(json.load(f)))
            except FileNotFoundError:
                continue
            except (ValueError, KeyError) as e:
                logger.warning(f"Skipping unreadable metadata {meta_path.name}: {e}")
        return objects

    def status(self) -> BackendStatus:
        objects = self.list()
        return BackendStatus(
            backend="local",
            objects=len(objects),
            size=sum(info.size for info in objects),
            details={"root": str(self.root)},
        )


def _info_to_dict(info: ObjectInfo) -> dict:
    return {
        "key": info.key,
        "size": info.size,
        "created_at": info.created_at.isoformat(),
        "metadata": info.metadata,
    }


def _info_from_dict(raw: dict) -> ObjectInfo:
    return ObjectInfo(
        key=raw["key"],
        size=int(raw["size"]),
        created_at=datetime.fromisoformat(raw["created_at"]),
        metadata=dict(raw.get("metadata") or {}),
    )
