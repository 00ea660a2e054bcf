# feedstore/domain/mapping.py
"""
Projection between the in-memory ServerPackage and its database rows.

The version text is the single source of truth: `is_prerelease` and
`is_semver2` columns are recomputed from it on every write.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List

from ..core.versioning import SemanticVersion, VersionRange
from .db_models import PackageRow
from .models import DependencySet, PackageDependency, ServerPackage
from .schemas import PackageMetadata

_COPIED_FIELDS = (
    "title", "description", "summary", "tags", "language", "icon_url", "license_url",
    "project_url", "release_notes", "copyright", "require_license_acceptance",
    "development_dependency", "min_client_version", "listed", "created", "last_updated",
    "package_size", "package_hash", "package_hash_algorithm", "is_latest_version",
    "is_absolute_latest_version", "semver1_is_latest", "semver1_is_absolute_latest",
)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def dependency_sets_to_json(sets: List[DependencySet]) -> List[Dict[str, Any]]:
    return [
        {
            "target_framework": s.target_framework,
            "dependencies": [
                {"id": d.id, "version": str(d.version_range) if d.version_range else None}
                for d in s.dependencies
            ],
        }
        for s in sets
    ]


def dependency_sets_from_json(raw: List[Dict[str, Any]] | None) -> List[DependencySet]:
    sets = []
    for s in raw or []:
        deps = [
            PackageDependency(
                id=d["id"],
                version_range=VersionRange.parse(d["version"]) if d.get("version") else None,
            )
            for d in s.get("dependencies") or []
        ]
        sets.append(DependencySet(target_framework=s.get("target_framework"), dependencies=deps))
    return sets


def to_domain(row: PackageRow) -> ServerPackage:
    pkg = ServerPackage(
        id=row.package_id,
        version=SemanticVersion.parse(row.version),
        authors=list(row.authors or []),
        owners=list(row.owners or []),
        supported_frameworks=list(row.supported_frameworks or []),
        dependency_sets=dependency_sets_from_json(row.dependency_sets),
    )
    for name in _COPIED_FIELDS:
        setattr(pkg, name, getattr(row, name))
    pkg.created = _as_utc(pkg.created)
    pkg.last_updated = _as_utc(pkg.last_updated)
    return pkg


def to_row(pkg: ServerPackage, row: PackageRow | None = None) -> PackageRow:
    row = row if row is not None else PackageRow()
    row.package_id = pkg.id
    row.version = str(pkg.version)
    row.is_prerelease = pkg.is_prerelease
    row.is_semver2 = pkg.is_semver2
    row.authors = list(pkg.authors)
    row.owners = list(pkg.owners)
    row.supported_frameworks = list(pkg.supported_frameworks)
    row.dependency_sets = dependency_sets_to_json(pkg.dependency_sets)
    for name in _COPIED_FIELDS:
        setattr(row, name, getattr(pkg, name))
    return row


def apply_latest_flags(pkg: ServerPackage, row: PackageRow) -> None:
    row.is_latest_version = pkg.is_latest_version
    row.is_absolute_latest_version = pkg.is_absolute_latest_version
    row.semver1_is_latest = pkg.semver1_is_latest
    row.semver1_is_absolute_latest = pkg.semver1_is_absolute_latest


def from_metadata(package_id: str, version: SemanticVersion, metadata: PackageMetadata) -> ServerPackage:
    """Build a fresh record from upload metadata; timestamps and payload fields are set by the repository."""
    return ServerPackage(
        id=package_id,
        version=version,
        title=metadata.title,
        description=metadata.description,
        summary=metadata.summary,
        tags=metadata.tags,
        authors=list(metadata.authors),
        owners=list(metadata.owners),
        language=metadata.language,
        icon_url=metadata.icon_url,
        license_url=metadata.license_url,
        project_url=metadata.project_url,
        release_notes=metadata.release_notes,
        copyright=metadata.copyright,
        require_license_acceptance=metadata.require_license_acceptance,
        development_dependency=metadata.development_dependency,
        min_client_version=metadata.min_client_version,
        supported_frameworks=list(metadata.supported_frameworks),
        dependency_sets=[
            DependencySet(
                target_framework=s.target_framework,
                dependencies=[
                    PackageDependency(
                        id=d.id,
                        version_range=VersionRange.parse(d.version) if d.version and d.version.strip() else None,
                    )
                    for d in s.dependencies
                ],
            )
            for s in metadata.dependency_sets
        ],
        listed=metadata.listed,
    )
