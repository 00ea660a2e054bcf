"""
Version model for the package feed.

Two schemes are accepted:

- legacy: 2-4 numeric parts with an optional single ``-special`` suffix,
  e.g. ``1.0``, ``1.2.3.4``, ``2.0.0-beta2``
- extended (SemVer2): dot separated prerelease identifiers and/or ``+build``
  metadata, e.g. ``1.0.0-rc.1``, ``1.0.0+git.abc``

Build metadata is kept in the text but never takes part in comparison.
"""
import functools
import re
from dataclasses import dataclass
from typing import Tuple

from .errors import InvalidVersion

_IDENT = r"[0-9A-Za-z-]+"
_VERSION_RE = re.compile(
    rf"^(?P<core>\d+(?:\.\d+){{1,3}})"
    rf"(?:-(?P<release>{_IDENT}(?:\.{_IDENT})*))?"
    rf"(?:\+(?P<metadata>{_IDENT}(?:\.{_IDENT})*))?$"
)


def _release_key(release: str) -> Tuple:
    # a release (no label) sorts above every prerelease of the same core
    if not release:
        return (1,)
    parts = []
    for ident in release.split("."):
        if ident.isdigit():
            parts.append((0, int(ident), ""))
        else:
            parts.append((1, 0, ident.lower()))
    return (0, tuple(parts))


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class SemanticVersion:
    major: int
    minor: int
    patch: int = 0
    revision: int | None = None
    release: str = ""
    metadata: str = ""
    original: str | None = None

    @classmethod
    def parse(cls, text: str) -> "SemanticVersion":
        if isinstance(text, SemanticVersion):
            return text
        if not isinstance(text, str):
            raise InvalidVersion(text)
        stripped = text.strip()
        m = _VERSION_RE.match(stripped)
        if not m:
            raise InvalidVersion(text)
        nums = [int(p) for p in m.group("core").split(".")]
        nums += [0] * (3 - len(nums))
        return cls(
            major=nums[0],
            minor=nums[1],
            patch=nums[2],
            revision=nums[3] if len(nums) > 3 else None,
            release=m.group("release") or "",
            metadata=m.group("metadata") or "",
            original=stripped,
        )

    @classmethod
    def try_parse(cls, text: str) -> "SemanticVersion | None":
        try:
            return cls.parse(text)
        except InvalidVersion:
            return None

    @property
    def is_prerelease(self) -> bool:
        return bool(self.release)

    @property
    def is_semver2(self) -> bool:
        return bool(self.metadata) or "." in self.release

    def _key(self):
        return (self.major, self.minor, self.patch, self.revision or 0, _release_key(self.release))

    def __eq__(self, other):
        if isinstance(other, str):
            other = SemanticVersion.try_parse(other)
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other):
        if isinstance(other, str):
            other = SemanticVersion.parse(other)
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self):
        return hash(self._key())

    def to_normalized_string(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.revision:
            text += f".{self.revision}"
        if self.release:
            text += f"-{self.release}"
        return text

    def to_full_string(self) -> str:
        text = self.to_normalized_string()
        if self.metadata:
            text += f"+{self.metadata}"
        return text

    def __str__(self):
        return self.original if self.original is not None else self.to_full_string()

    def __repr__(self):
        return f"SemanticVersion('{self}')"


def parse(text: str) -> SemanticVersion:
    return SemanticVersion.parse(text)


def format_version(version: SemanticVersion) -> str:
    return str(version)


def compare(a, b) -> int:
    """-1, 0 or 1; build metadata is ignored."""
    va, vb = SemanticVersion.parse(a), SemanticVersion.parse(b)
    if va < vb:
        return -1
    if vb < va:
        return 1
    return 0


@dataclass(frozen=True)
class VersionRange:
    """Dependency range in interval notation: ``1.0`` (>=), ``[1.0]``, ``[1.0,2.0)``, ``(,1.0]``."""
    min_version: SemanticVersion | None = None
    is_min_inclusive: bool = False
    max_version: SemanticVersion | None = None
    is_max_inclusive: bool = False
    original: str | None = None

    @classmethod
    def parse(cls, text: str) -> "VersionRange":
        if text is None or not text.strip():
            raise InvalidVersion(text)
        value = text.strip()

        # a bare version means "this version or newer"
        if value[0] not in "[(":
            return cls(min_version=SemanticVersion.parse(value), is_min_inclusive=True, original=value)

        if len(value) < 3 or value[-1] not in "])":
            raise InvalidVersion(text)
        min_inc = value[0] == "["
        max_inc = value[-1] == "]"
        parts = value[1:-1].split(",")
        if len(parts) > 2:
            raise InvalidVersion(text)

        if len(parts) == 1:
            # [1.0] is an exact match, (1.0) is meaningless
            if not (min_inc and max_inc):
                raise InvalidVersion(text)
            exact = SemanticVersion.parse(parts[0])
            return cls(exact, True, exact, True, original=value)

        lo, hi = (p.strip() for p in parts)
        if not lo and not hi:
            raise InvalidVersion(text)
        return cls(
            min_version=SemanticVersion.parse(lo) if lo else None,
            is_min_inclusive=min_inc,
            max_version=SemanticVersion.parse(hi) if hi else None,
            is_max_inclusive=max_inc,
            original=value,
        )

    @property
    def is_semver2(self) -> bool:
        return any(v is not None and v.is_semver2 for v in (self.min_version, self.max_version))

    def satisfies(self, version) -> bool:
        v = SemanticVersion.parse(version)
        if self.min_version is not None:
            if v < self.min_version or (v == self.min_version and not self.is_min_inclusive):
                return False
        if self.max_version is not None:
            if v > self.max_version or (v == self.max_version and not self.is_max_inclusive):
                return False
        return True

    def __str__(self):
        if self.original is not None:
            return self.original
        lo = str(self.min_version) if self.min_version is not None else ""
        hi = str(self.max_version) if self.max_version is not None else ""
        return f"{'[' if self.is_min_inclusive else '('}{lo},{hi}{']' if self.is_max_inclusive else ')'}"
