"""
Shared fixtures: a throwaway SQLite database per test and repository builders.
"""

import io
import zipfile

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from feedstore.core.database import create_db_engine
from feedstore.domain.db_models import PackageDataRow, PackageRow
from feedstore.domain.policy import RepositoryPolicy
from feedstore.domain.repos import PackageRepository
from feedstore.domain.storage import DatabaseBlobStore


def build_archive(files):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buf.getvalue()


@pytest.fixture
def engine(tmp_path):
    eng = create_db_engine(f"sqlite:///{tmp_path / 'feed.db'}", timeout=5)
    yield eng
    eng.dispose()


@pytest.fixture
def make_repo(engine):
    """Build a repository over the shared test database with an explicit policy."""
    def _make(framework_compat=None, cache_size=8, **policy):
        kwargs = {}
        if framework_compat is not None:
            kwargs["framework_compat"] = framework_compat
        return PackageRepository(
            engine=engine,
            policy=RepositoryPolicy(**policy),
            blob_store=DatabaseBlobStore(cache_size=cache_size),
            **kwargs,
        )
    return _make


@pytest.fixture
def repo(make_repo):
    return make_repo()


@pytest.fixture
def archive():
    """Callable building a zip payload from {path: content}."""
    return build_archive


@pytest.fixture
def payload():
    return build_archive({"lib/net45/Foo.dll": b"MZ\x90\x00", "Foo.nuspec": b"<package/>"})


@pytest.fixture
def row_counts(engine):
    """Callable returning (packages rows, packages_data rows)."""
    def _counts():
        with Session(engine) as session:
            packages = session.execute(select(func.count()).select_from(PackageRow)).scalar_one()
            data = session.execute(select(func.count()).select_from(PackageDataRow)).scalar_one()
        return packages, data
    return _counts
