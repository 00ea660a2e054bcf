"""
Tests for PackageRepository.add and the lookups that read its results.
"""

import base64
import hashlib
import io
from unittest.mock import patch

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from feedstore.core.errors import DuplicatePackage, InvalidVersion, StorageFailure, SymbolsPackageRejected
from feedstore.domain.policy import ClientCompatibility
from feedstore.domain.schemas import PackageMetadata


def _boom(*args, **kwargs):
    raise OperationalError("INSERT INTO packages_data", {}, Exception("disk I/O error"))


class TestAdd:
    """Successful adds."""

    def test_add_returns_stored_record(self, repo, payload):
        meta = PackageMetadata(title="Foo", description="A foo library", authors=["ann", "bob"], tags="foo bar")
        record = repo.add("Foo", "1.0.0", meta, payload)

        assert record.id == "Foo"
        assert str(record.version) == "1.0.0"
        assert record.authors == ["ann", "bob"]
        assert record.listed is True
        assert record.created is not None
        assert record.created == record.last_updated
        assert record.package_size == len(payload)
        assert record.package_hash == base64.b64encode(hashlib.sha512(payload).digest()).decode()
        assert record.package_hash_algorithm == "SHA512"
        assert record.is_latest_version and record.is_absolute_latest_version

    def test_add_accepts_dict_metadata_and_none(self, repo, payload):
        repo.add("Foo", "1.0.0", {"title": "Foo", "owners": ["team"]}, payload)
        repo.add("Bar", "1.0.0", None, payload)
        assert repo.find("Foo", "1.0.0").owners == ["team"]
        assert repo.find("Bar", "1.0.0").title is None

    def test_add_accepts_file_like_payload(self, repo, payload):
        repo.add("Foo", "1.0.0", None, io.BytesIO(payload))
        assert repo.get_payload("Foo", "1.0.0") == payload

    def test_exists_and_find(self, repo, payload):
        repo.add("Foo", "1.0.0", None, payload)
        assert repo.exists("Foo", "1.0.0")
        assert repo.exists("Foo", "1.0")
        assert not repo.exists("Foo", "1.0.1")
        assert repo.find("Foo", "1.0.0") is not None
        assert repo.find("Foo", "2.0.0") is None

    def test_package_id_is_case_sensitive(self, repo, payload):
        repo.add("Foo", "1.0.0", None, payload)
        assert not repo.exists("foo", "1.0.0")
        assert repo.find("foo", "1.0.0") is None

    def test_version_text_kept_as_supplied(self, repo, payload):
        repo.add("Foo", "1.0.0+build.42", None, payload)
        assert str(repo.find("Foo", "1.0.0", ClientCompatibility.MAX).version) == "1.0.0+build.42"

    def test_highest_version_becomes_absolute_latest(self, repo, payload):
        for v in ["1.0.0", "1.2.0", "1.1.0"]:
            repo.add("Foo", v, None, payload)
        repo.add("Foo", "2.0.0", None, payload)

        records = repo.find_all_by_id("Foo")
        absolute = [str(r.version) for r in records if r.is_absolute_latest_version]
        assert absolute == ["2.0.0"]

    def test_prerelease_add_keeps_stable_latest(self, repo, payload):
        repo.add("Foo", "1.0.0", None, payload)
        repo.add("Foo", "2.0.0-beta", None, payload)

        stable = repo.find("Foo", "1.0.0")
        beta = repo.find("Foo", "2.0.0-beta")
        assert stable.is_latest_version is True
        assert stable.is_absolute_latest_version is False
        assert beta.is_latest_version is False
        assert beta.is_absolute_latest_version is True

    def test_lower_prerelease_leaves_flags_alone(self, repo, payload):
        repo.add("Foo", "2.0.0", None, payload)
        repo.add("Foo", "1.5.0-alpha", None, payload)
        top = repo.find("Foo", "2.0.0")
        assert top.is_latest_version and top.is_absolute_latest_version

    def test_other_ids_untouched(self, repo, payload):
        repo.add("Foo", "1.0.0", None, payload)
        repo.add("Bar", "9.0.0", None, payload)
        assert repo.find("Foo", "1.0.0").is_absolute_latest_version


class TestAddPolicy:
    """Duplicate and symbols handling."""

    def test_duplicate_rejected_without_override(self, make_repo, payload, row_counts):
        repo = make_repo(allow_override_existing_package_on_push=False)
        repo.add("X", "1.0.0", None, payload)
        with pytest.raises(DuplicatePackage) as exc_info:
            repo.add("X", "1.0.0", None, b"other bytes")
        assert "X" in str(exc_info.value)
        assert "1.0.0" in str(exc_info.value)
        assert exc_info.value.package_id == "X"
        assert repo.get_payload("X", "1.0.0") == payload
        assert row_counts() == (1, 1)

    def test_build_metadata_variant_is_duplicate(self, make_repo, payload):
        repo = make_repo(allow_override_existing_package_on_push=False)
        repo.add("X", "1.0.0+a", None, payload)
        with pytest.raises(DuplicatePackage):
            repo.add("X", "1.0.0+b", None, payload)

    def test_override_replaces_payload(self, make_repo, payload, row_counts):
        repo = make_repo(allow_override_existing_package_on_push=True)
        repo.add("X", "1.0.0", PackageMetadata(title="old"), payload)
        record = repo.add("X", "1.0.0", PackageMetadata(title="new"), b"new bytes")

        assert record.title == "new"
        assert repo.get_payload("X", "1.0.0") == b"new bytes"
        assert repo.find("X", "1.0.0").package_size == len(b"new bytes")
        assert row_counts() == (1, 1)

    def test_override_with_different_build_metadata_replaces_row(self, make_repo, payload, row_counts):
        repo = make_repo(allow_override_existing_package_on_push=True)
        repo.add("X", "1.0.0+a", None, payload)
        repo.add("X", "1.0.0+b", None, b"b")
        records = repo.find_all_by_id("X", ClientCompatibility.MAX)
        assert [str(r.version) for r in records] == ["1.0.0+b"]
        assert records[0].is_absolute_latest_version
        assert row_counts() == (1, 1)

    def test_symbols_package_rejected_when_ignored(self, make_repo, archive, row_counts):
        repo = make_repo(ignore_symbols_packages=True)
        symbols = archive({"lib/net45/Foo.pdb": b"pdb", "src/Foo.cs": b"x"})
        with pytest.raises(SymbolsPackageRejected) as exc_info:
            repo.add("Foo", "1.0.0", None, symbols)
        assert "Foo" in str(exc_info.value) and "1.0.0" in str(exc_info.value)
        assert not repo.exists("Foo", "1.0.0")
        assert row_counts() == (0, 0)

    def test_symbols_package_accepted_by_default(self, repo, archive):
        symbols = archive({"lib/net45/Foo.pdb": b"pdb", "src/Foo.cs": b"x"})
        repo.add("Foo", "1.0.0", None, symbols)
        assert repo.exists("Foo", "1.0.0")

    def test_policy_read_from_settings_per_call(self, engine, payload, monkeypatch):
        from feedstore.core.config import reload_settings
        from feedstore.domain.repos import PackageRepository
        from feedstore.domain.storage import DatabaseBlobStore

        repo = PackageRepository(engine=engine, blob_store=DatabaseBlobStore())
        try:
            monkeypatch.setenv("ALLOW_OVERRIDE_EXISTING_PACKAGE_ON_PUSH", "false")
            reload_settings()
            repo.add("X", "1.0.0", None, payload)
            with pytest.raises(DuplicatePackage):
                repo.add("X", "1.0.0", None, payload)

            monkeypatch.setenv("ALLOW_OVERRIDE_EXISTING_PACKAGE_ON_PUSH", "true")
            reload_settings()
            repo.add("X", "1.0.0", None, b"replacement")
            assert repo.get_payload("X", "1.0.0") == b"replacement"
        finally:
            monkeypatch.undo()
            reload_settings()


class TestAddFailures:
    """Nothing is written when validation or storage fails."""

    def test_invalid_version(self, repo, payload, row_counts):
        with pytest.raises(InvalidVersion):
            repo.add("Foo", "not.a.version", None, payload)
        assert row_counts() == (0, 0)

    def test_metadata_over_column_limit(self, repo, payload, row_counts):
        with pytest.raises(ValidationError):
            repo.add("Foo", "1.0.0", {"title": "t" * 257}, payload)
        assert row_counts() == (0, 0)

    def test_storage_failure_leaves_nothing(self, repo, payload, row_counts):
        with patch.object(repo.blobs, "put", side_effect=_boom):
            with pytest.raises(StorageFailure) as exc_info:
                repo.add("Foo", "1.0.0", None, payload)
        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert not repo.exists("Foo", "1.0.0")
        assert row_counts() == (0, 0)

    def test_failed_override_keeps_original(self, repo, payload, row_counts):
        original = repo.add("Foo", "1.0.0", PackageMetadata(title="original"), payload)
        with patch.object(repo.blobs, "put", side_effect=_boom):
            with pytest.raises(StorageFailure):
                repo.add("Foo", "1.0.0", PackageMetadata(title="replacement"), b"new")
        kept = repo.find("Foo", "1.0.0")
        assert kept.title == "original"
        assert kept.created == original.created
        assert repo.get_payload("Foo", "1.0.0") == payload
        assert row_counts() == (1, 1)


class TestSchemeVisibility:
    """Extended-scheme records are hidden from legacy clients on every read path."""

    def test_semver2_hidden_from_default_clients(self, repo, payload):
        repo.add("Bar", "1.0.0", None, payload)
        repo.add("Bar", "2.0.0-rc.1", None, payload)

        assert [str(r.version) for r in repo.find_all_by_id("Bar")] == ["1.0.0"]
        assert {str(r.version) for r in repo.find_all_by_id("Bar", ClientCompatibility.MAX)} == {"1.0.0", "2.0.0-rc.1"}
        assert repo.find("Bar", "2.0.0-rc.1") is None
        assert repo.find("Bar", "2.0.0-rc.1", ClientCompatibility.MAX) is not None
        assert repo.get_payload("Bar", "2.0.0-rc.1") is None
        assert repo.get_payload("Bar", "2.0.0-rc.1", ClientCompatibility.MAX) == payload
        # uniqueness does not depend on the caller's scheme
        assert repo.exists("Bar", "2.0.0-rc.1")

    def test_semver2_dependency_makes_package_semver2(self, repo, payload):
        meta = {"dependency_sets": [{"target_framework": "net45",
                                     "dependencies": [{"id": "Dep", "version": "[1.0.0-beta.1, )"}]}]}
        record = repo.add("Baz", "1.0.0", meta, payload)
        assert record.is_semver2
        assert repo.find("Baz", "1.0.0") is None
        assert repo.find("Baz", "1.0.0", ClientCompatibility.MAX).dependency_sets[0].dependencies[0].id == "Dep"

    def test_legacy_track_flags(self, repo, payload):
        repo.add("Bar", "1.0.0", None, payload)
        repo.add("Bar", "2.0.0+build.1", None, payload)
        legacy = repo.find("Bar", "1.0.0")
        assert legacy.latest_flags(ClientCompatibility.DEFAULT) == (True, True)
        assert legacy.latest_flags(ClientCompatibility.MAX) == (False, False)
