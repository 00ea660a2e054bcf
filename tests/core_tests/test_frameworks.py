"""
Tests for target framework parsing and the compatibility relation.
"""

import pytest
from packaging.version import Version

from feedstore.core.frameworks import (
    ANY, NET_CORE_APP, NET_FRAMEWORK, NET_STANDARD, PORTABLE, UNSUPPORTED,
    framework_supports, is_compatible, parse_framework,
)


class TestParseFramework:
    """Short and long framework names."""

    @pytest.mark.parametrize("name,identifier,version", [
        ("net45", NET_FRAMEWORK, "4.5"),
        ("net451", NET_FRAMEWORK, "4.5.1"),
        ("net4.7.2", NET_FRAMEWORK, "4.7.2"),
        ("netstandard2.0", NET_STANDARD, "2.0"),
        ("netcoreapp3.1", NET_CORE_APP, "3.1"),
        ("net6.0", NET_CORE_APP, "6.0"),
        ("NET45", NET_FRAMEWORK, "4.5"),
        (".NETFramework,Version=v4.5", ".NETFramework", "4.5"),
    ])
    def test_known_names(self, name, identifier, version):
        fw = parse_framework(name)
        assert fw.identifier == identifier
        assert fw.version == Version(version)

    def test_profile_suffix(self):
        fw = parse_framework("net5.0-windows")
        assert fw.identifier == NET_CORE_APP
        assert fw.profile == "windows"

    def test_portable_members(self):
        fw = parse_framework("portable-net45+win8")
        assert fw.identifier == PORTABLE
        assert [m.identifier for m in fw.members] == [NET_FRAMEWORK, "Windows"]

    def test_any_and_empty(self):
        assert parse_framework("any").identifier == ANY
        assert parse_framework("").identifier == ANY

    def test_unknown_is_unsupported(self):
        assert parse_framework("foo1").identifier == UNSUPPORTED


class TestFrameworkSupports:
    """Can a project on `target` consume assets built for `candidate`?"""

    @pytest.mark.parametrize("target,candidate,expected", [
        ("net472", "net45", True),
        ("net45", "net472", False),
        ("net472", "netstandard2.0", True),
        ("net45", "netstandard2.0", False),
        ("net45", "netstandard1.1", True),
        ("net6.0", "netstandard2.1", True),
        ("netcoreapp2.1", "netstandard2.1", False),
        ("net6.0", "netcoreapp3.1", True),
        ("netcoreapp3.1", "net6.0", False),
        ("net6.0", "net45", False),
        ("net45", "portable-net45+win8", True),
        ("netcoreapp3.1", "portable-net45+win8", False),
        ("net45", "any", True),
        ("foo1", "foo1", True),
        ("foo1", "net45", False),
    ])
    def test_relation(self, target, candidate, expected):
        assert framework_supports(target, candidate) is expected


class TestIsCompatible:
    """Package-level check over all supported frameworks."""

    def test_no_declared_frameworks_is_compatible(self):
        assert is_compatible("net45", [])
        assert is_compatible("net45", None)

    def test_none_match(self):
        assert not is_compatible("net45", ["net6.0"])

    def test_any_match(self):
        assert is_compatible("net45", ["net6.0", "net40"])
