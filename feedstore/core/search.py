# feedstore/core/search.py
from typing import Callable, Iterable, List, Mapping, Sequence, Tuple

from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.orm import sessionmaker

from ..core.database import transaction
from ..core.frameworks import is_compatible
from ..core.versioning import SemanticVersion, VersionRange
from ..domain import mapping
from ..domain.db_models import PackageRow
from ..domain.models import ServerPackage
from ..domain.policy import ClientCompatibility, RepositoryPolicy

_TEXT_COLUMNS = (PackageRow.package_id, PackageRow.description, PackageRow.summary, PackageRow.tags)

FrameworkCompat = Callable[[str, Iterable[str]], bool]


def text_filter(term: str):
    """
    Case-insensitive substring match over id, description, summary and tags.

    Backends such as SQLite only fold ASCII in ``lower()``, so this is a
    sound narrowing only for ASCII terms; see ``can_prefilter``.
    """
    needle = term.lower()
    return or_(*(func.lower(col).contains(needle, autoescape=True) for col in _TEXT_COLUMNS))


def can_prefilter(term: str) -> bool:
    return term.isascii()


def matches_term(pkg: ServerPackage, term: str, case_sensitive: bool) -> bool:
    fields = (pkg.id, pkg.description, pkg.summary, pkg.tags)
    if case_sensitive:
        return any(f and term in f for f in fields)
    needle = term.lower()
    return any(f and needle in f.lower() for f in fields)


def scheme_filter(stmt, compatibility: ClientCompatibility):
    if not compatibility.allow_semver2:
        stmt = stmt.where(~PackageRow.is_semver2)
    return stmt


class SearchEngine:
    """Read-only, policy-shaped queries over the packages table. Results are unordered."""

    def __init__(self, session_factory: sessionmaker, policy_source: Callable[[], RepositoryPolicy],
                 framework_compat: FrameworkCompat = is_compatible):
        self._session_factory = session_factory
        self._policy = policy_source
        self._framework_compat = framework_compat

    def search(self, term: str | None, target_frameworks: Sequence[str] = (),
               allow_prerelease: bool = False,
               compatibility: ClientCompatibility = ClientCompatibility.DEFAULT) -> List[ServerPackage]:
        policy = self._policy()
        targets = [t for t in (target_frameworks or []) if t]

        stmt = select(PackageRow)
        # SQL narrows ASCII terms only; the exact check happens below
        if term and can_prefilter(term):
            stmt = stmt.where(text_filter(term))
        if not allow_prerelease:
            stmt = stmt.where(~PackageRow.is_prerelease)
        if policy.enable_delisting:
            stmt = stmt.where(PackageRow.listed)
        stmt = scheme_filter(stmt, compatibility)

        with transaction(self._session_factory, "Search") as session:
            packages = [mapping.to_domain(r) for r in session.execute(stmt).scalars().all()]

        if term:
            packages = [p for p in packages if matches_term(p, term, policy.case_sensitive_search)]
        if policy.enable_framework_filtering and targets:
            packages = [
                p for p in packages
                if any(self._framework_compat(t, p.supported_frameworks) for t in targets)
            ]

        logger.debug("Search for '{}' returned {} packages", term or "", len(packages))
        return packages

    def get_packages(self, compatibility: ClientCompatibility = ClientCompatibility.DEFAULT) -> List[ServerPackage]:
        stmt = scheme_filter(select(PackageRow), compatibility)
        with transaction(self._session_factory, "List packages") as session:
            return [mapping.to_domain(r) for r in session.execute(stmt).scalars().all()]

    def get_updates(self, packages: Iterable[Tuple[str, str]], include_prerelease: bool,
                    include_all_versions: bool, target_frameworks: Sequence[str] = (),
                    version_constraints: Mapping[str, VersionRange | str] | None = None,
                    compatibility: ClientCompatibility = ClientCompatibility.DEFAULT) -> List[ServerPackage]:
        """Newer listed versions of each installed (id, version)."""
        targets = [t for t in (target_frameworks or []) if t]
        constraints = {
            k: v if isinstance(v, VersionRange) else VersionRange.parse(v)
            for k, v in (version_constraints or {}).items()
        }
        installed = [(pid, SemanticVersion.parse(v)) for pid, v in packages]

        updates: List[ServerPackage] = []
        with transaction(self._session_factory, "Get updates") as session:
            for package_id, current in installed:
                stmt = scheme_filter(
                    select(PackageRow).where(PackageRow.package_id == package_id, PackageRow.listed),
                    compatibility,
                )
                candidates = [mapping.to_domain(r) for r in session.execute(stmt).scalars().all()]
                constraint = constraints.get(package_id)
                candidates = [
                    c for c in candidates
                    if c.version > current
                    and (include_prerelease or not c.is_prerelease)
                    and (constraint is None or constraint.satisfies(c.version))
                    and (not targets or any(self._framework_compat(t, c.supported_frameworks) for t in targets))
                ]
                if not candidates:
                    continue
                if include_all_versions:
                    updates.extend(sorted(candidates, key=lambda c: c.version))
                else:
                    updates.append(max(candidates, key=lambda c: c.version))
        return updates
