# feedstore/domain/models.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Tuple

from ..core.versioning import SemanticVersion, VersionRange


@dataclass
class PackageDependency:
    id: str
    version_range: VersionRange | None = None


@dataclass
class DependencySet:
    target_framework: str | None = None
    dependencies: List[PackageDependency] = field(default_factory=list)


@dataclass
class ServerPackage:
    id: str
    version: SemanticVersion
    title: str | None = None
    description: str | None = None
    summary: str | None = None
    tags: str | None = None
    authors: List[str] = field(default_factory=list)
    owners: List[str] = field(default_factory=list)
    language: str | None = None
    icon_url: str | None = None
    license_url: str | None = None
    project_url: str | None = None
    release_notes: str | None = None
    copyright: str | None = None
    require_license_acceptance: bool = False
    development_dependency: bool = False
    min_client_version: str | None = None
    supported_frameworks: List[str] = field(default_factory=list)
    dependency_sets: List[DependencySet] = field(default_factory=list)
    listed: bool = True
    created: datetime | None = None
    last_updated: datetime | None = None
    package_size: int = 0
    package_hash: str | None = None
    package_hash_algorithm: str | None = None
    is_latest_version: bool = False
    is_absolute_latest_version: bool = False
    semver1_is_latest: bool = False
    semver1_is_absolute_latest: bool = False

    @property
    def is_prerelease(self) -> bool:
        return self.version.is_prerelease

    @property
    def is_semver2(self) -> bool:
        if self.version.is_semver2:
            return True
        return any(
            dep.version_range is not None and dep.version_range.is_semver2
            for dep_set in self.dependency_sets
            for dep in dep_set.dependencies
        )

    def latest_flags(self, compatibility) -> Tuple[bool, bool]:
        """(is_latest, is_absolute_latest) as seen by a client with ``compatibility``."""
        if compatibility.allow_semver2:
            return self.is_latest_version, self.is_absolute_latest_version
        return self.semver1_is_latest, self.semver1_is_absolute_latest

    @property
    def key(self) -> Tuple[str, str]:
        return self.id, str(self.version)
