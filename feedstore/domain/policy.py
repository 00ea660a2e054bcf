# feedstore/domain/policy.py
from dataclasses import dataclass
from typing import ClassVar

from ..core.config import Settings


@dataclass(frozen=True)
class ClientCompatibility:
    """What versioning scheme the calling client understands."""
    allow_semver2: bool = False

    DEFAULT: ClassVar["ClientCompatibility"]
    MAX: ClassVar["ClientCompatibility"]


ClientCompatibility.DEFAULT = ClientCompatibility(allow_semver2=False)
# used by the latest-version resolver, which must see every record
ClientCompatibility.MAX = ClientCompatibility(allow_semver2=True)


@dataclass(frozen=True)
class RepositoryPolicy:
    allow_override_existing_package_on_push: bool = True
    ignore_symbols_packages: bool = False
    enable_delisting: bool = False
    enable_framework_filtering: bool = False
    case_sensitive_search: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "RepositoryPolicy":
        return cls(
            allow_override_existing_package_on_push=settings.ALLOW_OVERRIDE_EXISTING_PACKAGE_ON_PUSH,
            ignore_symbols_packages=settings.IGNORE_SYMBOLS_PACKAGES,
            enable_delisting=settings.ENABLE_DELISTING,
            enable_framework_filtering=settings.ENABLE_FRAMEWORK_FILTERING,
            case_sensitive_search=settings.SEARCH_CASE_SENSITIVE,
        )
