# feedstore/domain/latest.py
"""
Latest-version bookkeeping for one package id.

Two tracks are maintained:

- full (SemVer2-aware): ``is_absolute_latest_version`` / ``is_latest_version``
- legacy (SemVer1 only): ``semver1_is_absolute_latest`` / ``semver1_is_latest``

On each track the absolute latest is the highest version overall and the
latest is the highest non-prerelease version. Unlisted packages take part.
"""
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from . import mapping
from .db_models import PackageRow
from .models import ServerPackage

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

_FLAGS = ("is_latest_version", "is_absolute_latest_version", "semver1_is_latest", "semver1_is_absolute_latest")


def _rank(pkg: ServerPackage):
    # equal versions (e.g. differing only in build metadata) fall back to newest upload
    return pkg.version, pkg.created or _EPOCH


def _highest(packages: Iterable[ServerPackage]) -> Optional[ServerPackage]:
    best = None
    for pkg in packages:
        if best is None or _rank(pkg) > _rank(best):
            best = pkg
    return best


def update_latest_versions(packages: Sequence[ServerPackage]) -> List[ServerPackage]:
    """Recompute the latest flags in place; returns the packages whose flags changed."""
    packages = list(packages)
    if not packages:
        return []

    before = {id(p): tuple(getattr(p, f) for f in _FLAGS) for p in packages}

    absolute_latest = _highest(packages)
    latest = _highest(p for p in packages if not p.is_prerelease)

    semver1 = [p for p in packages if not p.is_semver2]
    semver1_absolute_latest = _highest(semver1)
    semver1_latest = _highest(p for p in semver1 if not p.is_prerelease)

    for pkg in packages:
        pkg.is_absolute_latest_version = pkg is absolute_latest
        pkg.is_latest_version = pkg is latest
        pkg.semver1_is_absolute_latest = pkg is semver1_absolute_latest
        pkg.semver1_is_latest = pkg is semver1_latest

    return [p for p in packages if tuple(getattr(p, f) for f in _FLAGS) != before[id(p)]]


class LatestVersionResolver:
    """Loads every record of an id (no scheme filtering) and rewrites its latest flags."""

    def resolve(self, session: Session, package_id: str) -> List[ServerPackage]:
        logger.info("Updating latest packages for {}.", package_id)
        rows = session.execute(
            select(PackageRow).where(PackageRow.package_id == package_id).with_for_update()
        ).scalars().all()

        pairs = [(row, mapping.to_domain(row)) for row in rows]
        packages = [pkg for _, pkg in pairs]
        changed = update_latest_versions(packages)
        changed_ids = {id(p) for p in changed}
        for row, pkg in pairs:
            if id(pkg) in changed_ids:
                mapping.apply_latest_flags(pkg, row)

        logger.info("Finished updating latest packages for {} ({} changed).", package_id, len(changed))
        return packages
