# feedstore/core/frameworks.py
"""
Target framework names and the compatibility relation used by framework filtering.

Accepts short folder names (``net45``, ``net4.7.2``, ``netstandard2.0``,
``netcoreapp3.1``, ``net6.0``, ``portable-net45+win8``) and long names
(``.NETFramework,Version=v4.5``).
"""
import re
from dataclasses import dataclass, field
from typing import Iterable, Tuple

from packaging.version import InvalidVersion as _BadFrameworkVersion, Version

NET_FRAMEWORK = ".NETFramework"
NET_STANDARD = ".NETStandard"
NET_CORE_APP = ".NETCoreApp"
PORTABLE = ".NETPortable"
ANY = "Any"
UNSUPPORTED = "Unsupported"

_SHORT_IDENTIFIERS = {
    "net": NET_FRAMEWORK,
    "netstandard": NET_STANDARD,
    "netcoreapp": NET_CORE_APP,
    "portable": PORTABLE,
    "sl": "Silverlight",
    "win": "Windows",
    "wp": "WindowsPhone",
    "uap": "UAP",
    "native": "native",
    "mono": "Mono",
    "xamarinios": "Xamarin.iOS",
    "monoandroid": "MonoAndroid",
}

# lowest .NET Framework / .NET Core that implements each netstandard version
_NETSTANDARD_ON_FRAMEWORK = {
    "1.0": "4.5", "1.1": "4.5", "1.2": "4.5.1", "1.3": "4.6",
    "1.4": "4.6.1", "1.5": "4.6.1", "1.6": "4.6.1", "2.0": "4.6.1",
}
_NETSTANDARD_ON_CORE = {
    "1.0": "1.0", "1.1": "1.0", "1.2": "1.0", "1.3": "1.0", "1.4": "1.0",
    "1.5": "1.0", "1.6": "1.0", "2.0": "2.0", "2.1": "3.0",
}

_SHORT_RE = re.compile(r"^(?P<id>[a-z]+)(?P<ver>[0-9][0-9.]*)?(?:-(?P<profile>.+))?$")
_LONG_RE = re.compile(r"^(?P<id>[^,]+),\s*Version=v?(?P<ver>[0-9.]+)(?:,\s*Profile=(?P<profile>.+))?$", re.I)


@dataclass(frozen=True)
class FrameworkName:
    identifier: str
    version: Version = field(default_factory=lambda: Version("0.0"))
    profile: str = ""
    members: Tuple["FrameworkName", ...] = ()
    original: str = ""

    def __str__(self):
        return self.original or f"{self.identifier},Version=v{self.version}"


def _short_version(digits: str) -> Version:
    # "45" -> 4.5, "451" -> 4.5.1, "4.7.2" stays dotted
    if "." in digits:
        return Version(digits)
    return Version(".".join(digits)) if len(digits) > 1 else Version(f"{digits}.0")


def parse_framework(name: str) -> FrameworkName:
    text = (name or "").strip()
    if not text or text.lower() == "any":
        return FrameworkName(ANY, original=text)

    m = _LONG_RE.match(text)
    if m:
        return FrameworkName(m.group("id"), Version(m.group("ver")), m.group("profile") or "", original=text)

    lowered = text.lower()
    if lowered.startswith("portable-"):
        members = tuple(parse_framework(part) for part in lowered[len("portable-"):].split("+") if part)
        return FrameworkName(PORTABLE, members=members, original=text)

    m = _SHORT_RE.match(lowered)
    if not m or m.group("id") not in _SHORT_IDENTIFIERS:
        return FrameworkName(UNSUPPORTED, original=text)
    try:
        version = _short_version(m.group("ver")) if m.group("ver") else Version("0.0")
    except _BadFrameworkVersion:
        return FrameworkName(UNSUPPORTED, original=text)

    identifier = _SHORT_IDENTIFIERS[m.group("id")]
    # net5.0 and later are .NET Core under a shorter moniker
    if identifier == NET_FRAMEWORK and version >= Version("5.0"):
        identifier = NET_CORE_APP
    return FrameworkName(identifier, version, m.group("profile") or "", original=text)


def _as_framework(value) -> FrameworkName:
    return value if isinstance(value, FrameworkName) else parse_framework(value)


def _netstandard_supported_by(candidate: FrameworkName, target: FrameworkName) -> bool:
    key = f"{candidate.version.major}.{candidate.version.minor}"
    table = {NET_FRAMEWORK: _NETSTANDARD_ON_FRAMEWORK, NET_CORE_APP: _NETSTANDARD_ON_CORE}.get(target.identifier)
    if not table or key not in table:
        return False
    return target.version >= Version(table[key])


def framework_supports(target, candidate) -> bool:
    """True if a project targeting ``target`` can consume assets built for ``candidate``."""
    target, candidate = _as_framework(target), _as_framework(candidate)
    if candidate.identifier == ANY or target.identifier == ANY:
        return True
    if candidate.identifier == PORTABLE:
        return any(framework_supports(target, member) for member in candidate.members)
    if candidate.identifier == UNSUPPORTED or target.identifier == UNSUPPORTED:
        return candidate.original.lower() == target.original.lower()
    if candidate.identifier == target.identifier:
        return candidate.version <= target.version
    if candidate.identifier == NET_STANDARD:
        return _netstandard_supported_by(candidate, target)
    return False


def is_compatible(target, supported_frameworks: Iterable[str]) -> bool:
    supported = list(supported_frameworks or [])
    # packages that declare nothing are framework neutral
    if not supported:
        return True
    return any(framework_supports(target, fw) for fw in supported)
