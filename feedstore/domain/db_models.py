# feedstore/domain/db_models.py
from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKeyConstraint, Index, Integer, JSON, LargeBinary, String, Text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class PackageRow(Base):
    """Queryable metadata and derived flags; never carries the payload."""
    __tablename__ = "packages"
    __table_args__ = (
        Index("ix_packages_id", "package_id"),
    )

    package_id = Column(String(100), primary_key=True)
    version = Column(String(64), primary_key=True)

    # projected from `version` by the mapping adapter
    is_prerelease = Column(Boolean, nullable=False, default=False)
    is_semver2 = Column(Boolean, nullable=False, default=False)

    title = Column(String(256), nullable=True)
    description = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    tags = Column(String(2000), nullable=True)
    authors = Column(JSON, nullable=False, default=list)
    owners = Column(JSON, nullable=False, default=list)
    language = Column(String(20), nullable=True)
    icon_url = Column(String, nullable=True)
    license_url = Column(String, nullable=True)
    project_url = Column(String, nullable=True)
    release_notes = Column(Text, nullable=True)
    copyright = Column(String, nullable=True)
    require_license_acceptance = Column(Boolean, nullable=False, default=False)
    development_dependency = Column(Boolean, nullable=False, default=False)
    min_client_version = Column(String(44), nullable=True)
    supported_frameworks = Column(JSON, nullable=False, default=list)
    dependency_sets = Column(JSON, nullable=False, default=list)

    listed = Column(Boolean, nullable=False, default=True)
    created = Column(DateTime(timezone=True), nullable=False)
    last_updated = Column(DateTime(timezone=True), nullable=False)
    package_size = Column(Integer, nullable=False, default=0)
    package_hash = Column(String, nullable=True)
    package_hash_algorithm = Column(String(10), nullable=True)

    is_latest_version = Column(Boolean, nullable=False, default=False)
    is_absolute_latest_version = Column(Boolean, nullable=False, default=False)
    semver1_is_latest = Column(Boolean, nullable=False, default=False)
    semver1_is_absolute_latest = Column(Boolean, nullable=False, default=False)


class PackageDataRow(Base):
    """Raw package bytes, one row per (package_id, version) in `packages`."""
    __tablename__ = "packages_data"
    __table_args__ = (
        ForeignKeyConstraint(
            ["package_id", "version"], ["packages.package_id", "packages.version"]
        ),
    )

    package_id = Column(String(100), primary_key=True)
    version = Column(String(64), primary_key=True)
    data = Column(LargeBinary, nullable=False)
    created = Column(DateTime(timezone=True), nullable=False)
    last_updated = Column(DateTime(timezone=True), nullable=False)
