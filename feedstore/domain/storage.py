# feedstore/domain/storage.py
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Tuple

from loguru import logger
from sqlalchemy.orm import Session

from ..core.config import get_settings
from .db_models import PackageDataRow

BlobKey = Tuple[str, str]


# ---------------------------------------------------------
# Interface
# ---------------------------------------------------------
class BlobStore:
    def put(self, session: Session, package_id: str, version: str, data: bytes, now: datetime) -> None:
        """Stage the payload row in the caller's transaction."""
        raise NotImplementedError

    def get(self, session: Session, package_id: str, version: str) -> bytes | None:
        """Return the payload bytes, or None if there is no row."""
        raise NotImplementedError

    def delete(self, session: Session, package_id: str, version: str) -> None:
        """Stage removal of the payload row in the caller's transaction."""
        raise NotImplementedError

    def invalidate(self, package_id: str, version: str) -> None:
        pass

    def clear_cache(self) -> None:
        pass


# ---------------------------------------------------------
# Relational implementation (packages_data table)
# ---------------------------------------------------------
@dataclass
class DatabaseBlobStore(BlobStore):
    cache_size: int = 64
    _cache: "OrderedDict[BlobKey, bytes]" = field(default_factory=OrderedDict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    # bumped on every invalidation; a read only fills the cache if it saw no bump
    _generation: int = field(default=0, init=False, repr=False)

    def put(self, session: Session, package_id: str, version: str, data: bytes, now: datetime) -> None:
        session.add(PackageDataRow(
            package_id=package_id, version=version, data=data, created=now, last_updated=now,
        ))
        self.invalidate(package_id, version)

    def get(self, session: Session, package_id: str, version: str) -> bytes | None:
        key = (package_id, version)
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
                logger.debug("Payload cache hit for {} {}", package_id, version)
                return self._cache[key]
            generation = self._generation

        logger.debug("Payload cache miss for {} {}", package_id, version)
        row = session.get(PackageDataRow, {"package_id": package_id, "version": version})
        if row is None:
            return None
        data = bytes(row.data)
        if self.cache_size > 0:
            with self._lock:
                if self._generation != generation:
                    logger.debug("Payload {} {} changed during read, not caching", package_id, version)
                    return data
                self._cache[key] = data
                self._cache.move_to_end(key)
                while len(self._cache) > self.cache_size:
                    self._cache.popitem(last=False)
        return data

    def delete(self, session: Session, package_id: str, version: str) -> None:
        row = session.get(PackageDataRow, {"package_id": package_id, "version": version})
        if row is not None:
            session.delete(row)
        self.invalidate(package_id, version)

    def invalidate(self, package_id: str, version: str) -> None:
        with self._lock:
            self._generation += 1
            self._cache.pop((package_id, version), None)

    def clear_cache(self) -> None:
        with self._lock:
            self._generation += 1
            self._cache.clear()

    def cached_keys(self):
        with self._lock:
            return list(self._cache.keys())


# ---------------------------------------------------------
# Factory / global getter
# ---------------------------------------------------------
_blob_instance: BlobStore | None = None

def get_blob_store() -> BlobStore:
    """Return the process-wide blob store."""
    global _blob_instance
    if _blob_instance:
        return _blob_instance

    s = get_settings()
    _blob_instance = DatabaseBlobStore(cache_size=s.PAYLOAD_CACHE_SIZE)
    return _blob_instance
