# feedstore/domain/repos.py
import base64
import hashlib
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from loguru import logger
from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.database import get_engine, init_db, make_session_factory, transaction
from ..core.errors import DuplicatePackage, SymbolsPackageRejected
from ..core.frameworks import is_compatible
from ..core.search import SearchEngine, scheme_filter
from ..core.symbols import is_symbols_package
from ..core.versioning import SemanticVersion, VersionRange
from . import mapping
from .db_models import PackageRow
from .latest import LatestVersionResolver
from .models import ServerPackage
from .policy import ClientCompatibility, RepositoryPolicy
from .schemas import PackageMetadata
from .storage import BlobStore, get_blob_store

HASH_ALGORITHM = "SHA512"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _hash_payload(payload: bytes) -> str:
    return base64.b64encode(hashlib.sha512(payload).digest()).decode("ascii")


class _IdLocks:
    """One lock per package id so mutations of the same id apply in call order."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    @contextmanager
    def hold(self, package_id: str):
        with self._guard:
            lock = self._locks.setdefault(package_id, threading.Lock())
        with lock:
            yield


class PackageRepository:
    """
    Transactional façade over the packages/packages_data tables.

    Every add/remove writes both rows (or neither) and recomputes the latest
    flags for the id in the same transaction.
    """

    def __init__(self, engine: Engine | None = None, policy: RepositoryPolicy | None = None,
                 blob_store: BlobStore | None = None, framework_compat=is_compatible):
        self._engine = engine if engine is not None else get_engine()
        init_db(self._engine)
        self._session_factory = make_session_factory(self._engine)
        # None means "read settings on every call"
        self.policy = policy
        self.blobs = blob_store if blob_store is not None else get_blob_store()
        self._resolver = LatestVersionResolver()
        self._search = SearchEngine(self._session_factory, self._current_policy, framework_compat)
        self._locks = _IdLocks()

    def _current_policy(self) -> RepositoryPolicy:
        if self.policy is not None:
            return self.policy
        return RepositoryPolicy.from_settings(get_settings())

    # ---------- lookups ----------

    @staticmethod
    def _matching_rows(session: Session, package_id: str, version: SemanticVersion) -> List[PackageRow]:
        rows = session.execute(
            select(PackageRow).where(PackageRow.package_id == package_id)
        ).scalars().all()
        return [r for r in rows if SemanticVersion.parse(r.version) == version]

    def _find_row(self, session: Session, package_id: str, version: SemanticVersion) -> PackageRow | None:
        rows = self._matching_rows(session, package_id, version)
        if not rows:
            return None
        exact = [r for r in rows if r.version == str(version)]
        return exact[0] if exact else max(rows, key=lambda r: mapping.to_domain(r).created)

    def exists(self, package_id: str, version) -> bool:
        version = SemanticVersion.parse(version)
        with transaction(self._session_factory, f"Looking up {package_id} {version}") as session:
            return bool(self._matching_rows(session, package_id, version))

    def find(self, package_id: str, version,
             compatibility: ClientCompatibility = ClientCompatibility.DEFAULT) -> ServerPackage | None:
        version = SemanticVersion.parse(version)
        with transaction(self._session_factory, f"Looking up {package_id} {version}") as session:
            row = self._find_row(session, package_id, version)
            if row is None or (row.is_semver2 and not compatibility.allow_semver2):
                return None
            return mapping.to_domain(row)

    def find_all_by_id(self, package_id: str,
                       compatibility: ClientCompatibility = ClientCompatibility.DEFAULT) -> List[ServerPackage]:
        stmt = scheme_filter(select(PackageRow).where(PackageRow.package_id == package_id), compatibility)
        with transaction(self._session_factory, f"Listing versions of {package_id}") as session:
            return [mapping.to_domain(r) for r in session.execute(stmt).scalars().all()]

    def get_payload(self, package_id: str, version,
                    compatibility: ClientCompatibility = ClientCompatibility.DEFAULT) -> bytes | None:
        version = SemanticVersion.parse(version)
        with transaction(self._session_factory, f"Reading payload of {package_id} {version}") as session:
            row = self._find_row(session, package_id, version)
            if row is None or (row.is_semver2 and not compatibility.allow_semver2):
                return None
            return self.blobs.get(session, row.package_id, row.version)

    # ---------- queries ----------

    def search(self, term: str | None, target_frameworks: Sequence[str] = (), allow_prerelease: bool = False,
               compatibility: ClientCompatibility = ClientCompatibility.DEFAULT) -> List[ServerPackage]:
        return self._search.search(term, target_frameworks, allow_prerelease, compatibility)

    def get_packages(self, compatibility: ClientCompatibility = ClientCompatibility.DEFAULT) -> List[ServerPackage]:
        return self._search.get_packages(compatibility)

    def get_updates(self, packages: Iterable[Tuple[str, str]], include_prerelease: bool,
                    include_all_versions: bool, target_frameworks: Sequence[str] = (),
                    version_constraints: Mapping[str, VersionRange | str] | None = None,
                    compatibility: ClientCompatibility = ClientCompatibility.DEFAULT) -> List[ServerPackage]:
        return self._search.get_updates(
            packages, include_prerelease, include_all_versions, target_frameworks,
            version_constraints, compatibility,
        )

    # ---------- mutations ----------

    def add(self, package_id: str, version, metadata: PackageMetadata | dict | None, payload) -> ServerPackage:
        """
        Store a package version and its payload.

        Raises SymbolsPackageRejected / DuplicatePackage per policy and
        StorageFailure if the store fails; in every failure case nothing is written.
        """
        version = SemanticVersion.parse(version)
        if metadata is None:
            metadata = PackageMetadata()
        elif isinstance(metadata, dict):
            metadata = PackageMetadata(**metadata)
        if hasattr(payload, "read"):
            payload = payload.read()
        payload = bytes(payload)
        policy = self._current_policy()

        logger.info("Start adding package {} {}.", package_id, version)

        if policy.ignore_symbols_packages and is_symbols_package(payload):
            err = SymbolsPackageRejected(package_id, str(version))
            logger.error(str(err))
            raise err

        replaced: List[str] = []
        with self._locks.hold(package_id):
            with transaction(self._session_factory, f"Adding package {package_id} {version}") as session:
                existing = self._matching_rows(session, package_id, version)
                if existing and not policy.allow_override_existing_package_on_push:
                    err = DuplicatePackage(package_id, str(version))
                    logger.error(str(err))
                    raise err

                for row in existing:
                    replaced.append(row.version)
                    self.blobs.delete(session, row.package_id, row.version)
                    session.delete(row)
                session.flush()

                now = _utcnow()
                pkg = mapping.from_metadata(package_id, version, metadata)
                pkg.created = now
                pkg.last_updated = now
                pkg.package_size = len(payload)
                pkg.package_hash = _hash_payload(payload)
                pkg.package_hash_algorithm = HASH_ALGORITHM
                session.add(mapping.to_row(pkg))
                session.flush()
                self.blobs.put(session, package_id, str(version), payload, now)
                session.flush()

                packages = self._resolver.resolve(session, package_id)

        # a concurrent reader may have cached the old bytes before commit
        for old in replaced + [str(version)]:
            self.blobs.invalidate(package_id, old)

        if replaced:
            logger.info("Replaced existing package {} {}.", package_id, ", ".join(replaced))
        logger.info("Finished adding package {} {}.", package_id, version)
        return next(p for p in packages if str(p.version) == str(version))

    def remove(self, package_id: str, version) -> None:
        """Unlist (delisting enabled) or delete a package version; missing versions are ignored."""
        version = SemanticVersion.parse(version)
        policy = self._current_policy()

        with self._locks.hold(package_id):
            with transaction(self._session_factory, f"Removing package {package_id} {version}") as session:
                row = self._find_row(session, package_id, version)
                if row is None:
                    logger.debug("Package {} {} not found, nothing to remove.", package_id, version)
                    return None
                stored_version = row.version

                logger.info("Start removing package {} {}.", package_id, stored_version)
                if policy.enable_delisting:
                    row.listed = False
                    row.last_updated = _utcnow()
                    logger.info("Unlisted package {} {}.", package_id, stored_version)
                else:
                    self.blobs.delete(session, row.package_id, row.version)
                    session.delete(row)
                    logger.info("Finished removing package {} {}.", package_id, stored_version)
                session.flush()

                self._resolver.resolve(session, package_id)

        self.blobs.invalidate(package_id, stored_version)
        return None

    def update_latest_versions(self, package_id: str) -> List[ServerPackage]:
        """Re-run the latest-version resolver for one id in its own transaction."""
        with self._locks.hold(package_id):
            with transaction(self._session_factory, f"Updating latest packages for {package_id}") as session:
                return self._resolver.resolve(session, package_id)

    def clear_payload_cache(self) -> None:
        self.blobs.clear_cache()
        logger.info("Cleared package cache.")


_repo_instance: PackageRepository | None = None

def get_repo() -> PackageRepository:
    global _repo_instance
    if _repo_instance is None:
        _repo_instance = PackageRepository()
    return _repo_instance
