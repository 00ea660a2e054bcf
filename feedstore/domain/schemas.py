# feedstore/domain/schemas.py
from pydantic import BaseModel, Field, field_validator
from typing import List

from ..core.versioning import VersionRange


class DependencySchema(BaseModel):
    id: str = Field(min_length=1)
    version: str | None = None  # interval notation, e.g. "[1.0,2.0)"

    @field_validator("version")
    @classmethod
    def _valid_range(cls, v: str | None) -> str | None:
        if v is not None and v.strip():
            VersionRange.parse(v)
        return v


class DependencySetSchema(BaseModel):
    target_framework: str | None = None
    dependencies: List[DependencySchema] = []


class PackageMetadata(BaseModel):
    """Caller-supplied (or archive-derived) metadata for an uploaded package."""
    title: str | None = Field(default=None, max_length=256)
    description: str | None = None
    summary: str | None = None
    tags: str | None = Field(default=None, max_length=2000)
    authors: List[str] = []
    owners: List[str] = []
    language: str | None = Field(default=None, max_length=20)
    icon_url: str | None = None
    license_url: str | None = None
    project_url: str | None = None
    release_notes: str | None = None
    copyright: str | None = None
    require_license_acceptance: bool = False
    development_dependency: bool = False
    min_client_version: str | None = Field(default=None, max_length=44)
    supported_frameworks: List[str] = []
    dependency_sets: List[DependencySetSchema] = []
    listed: bool = True
