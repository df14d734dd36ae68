"""Semantic versions, version ranges and version-based deployable selection."""

from __future__ import annotations

import logging
import operator
import re
import string
from dataclasses import dataclass
from functools import total_ordering
from typing import Callable, Iterable, Mapping

from .meta import ANNOTATION_DEPLOYABLE_VERSION, KubeObject, NamespacedName

log = logging.getLogger(__name__)

_NUMBERS = frozenset(string.digits)
_ALPHANUM = frozenset(string.ascii_letters + string.digits + "-")
_MAX_UINT64 = 2**64 - 1
_SIGNED_INT_RE = re.compile(r"[+-]?\d+")


def _contains_only(text: str, allowed: frozenset[str]) -> bool:
    return all(char in allowed for char in text)


def _has_leading_zeroes(text: str) -> bool:
    return len(text) > 1 and text[0] == "0"


def _parse_number(text: str, what: str) -> int:
    if not _contains_only(text, _NUMBERS):
        raise ValueError(f"Invalid character(s) found in {what} number {text!r}")
    if _has_leading_zeroes(text):
        raise ValueError(f"{what} number must not contain leading zeroes {text!r}")
    if not text:
        raise ValueError(f"{what} number is empty")
    value = int(text)
    if value > _MAX_UINT64:
        raise ValueError(f"{what} number {text!r} is out of range")
    return value


def _parse_prerelease(text: str) -> int | str:
    if not text:
        raise ValueError("Prerelease is empty")
    if _contains_only(text, _NUMBERS):
        if _has_leading_zeroes(text):
            raise ValueError(f"Numeric PreRelease version must not contain leading zeroes {text!r}")
        return int(text)
    if _contains_only(text, _ALPHANUM):
        return text
    raise ValueError(f"Invalid character(s) found in prerelease {text!r}")


def _compare_prerelease(a: int | str, b: int | str) -> int:
    a_numeric, b_numeric = isinstance(a, int), isinstance(b, int)
    if a_numeric and not b_numeric:
        return -1
    if b_numeric and not a_numeric:
        return 1
    return (a > b) - (a < b)


@total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """A semantic version; build metadata takes no part in comparison."""

    major: int = 0
    minor: int = 0
    patch: int = 0
    pre: tuple[int | str, ...] = ()
    build: tuple[str, ...] = ()

    def compare(self, other: Version) -> int:
        mine = (self.major, self.minor, self.patch)
        theirs = (other.major, other.minor, other.patch)
        if mine != theirs:
            return 1 if mine > theirs else -1
        if not self.pre and not other.pre:
            return 0
        if not self.pre:
            return 1
        if not other.pre:
            return -1
        for a, b in zip(self.pre, other.pre):
            result = _compare_prerelease(a, b)
            if result:
                return result
        return (len(self.pre) > len(other.pre)) - (len(self.pre) < len(other.pre))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash((self.major, self.minor, self.patch, self.pre))

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            text += "-" + ".".join(str(part) for part in self.pre)
        if self.build:
            text += "+" + ".".join(self.build)
        return text


def _parse_strict(text: str) -> Version:
    if not text:
        raise ValueError("Version string empty")
    parts = text.split(".", 2)
    if len(parts) != 3:
        raise ValueError("No Major.Minor.Patch elements found")
    major = _parse_number(parts[0], "Major")
    minor = _parse_number(parts[1], "Minor")

    patch_text = parts[2]
    build: list[str] = []
    prerelease: list[str] = []
    if "+" in patch_text:
        patch_text, _, build_text = patch_text.partition("+")
        build = build_text.split(".")
    if "-" in patch_text:
        patch_text, _, pre_text = patch_text.partition("-")
        prerelease = pre_text.split(".")
    patch = _parse_number(patch_text, "Patch")

    pre = tuple(_parse_prerelease(part) for part in prerelease)
    for part in build:
        if not part:
            raise ValueError("Build meta data is empty")
        if not _contains_only(part, _ALPHANUM):
            raise ValueError(f"Invalid character(s) found in build meta data {part!r}")
    return Version(major, minor, patch, pre, tuple(build))


def parse_tolerant(text: str) -> Version:
    """Parse a version, allowing surrounding space, a leading ``v`` and short forms."""
    text = text.strip()
    if text.startswith("v"):
        text = text[1:]
    parts = text.split(".", 2)
    if len(parts) < 3:
        if any(char in parts[-1] for char in "+-"):
            raise ValueError("Short version cannot contain PreRelease/Build meta data")
        parts += ["0"] * (3 - len(parts))
        text = ".".join(parts)
    return _parse_strict(text)


_COMPARATORS: dict[str, Callable[[Version, Version], bool]] = {
    "": operator.eq,
    "=": operator.eq,
    "==": operator.eq,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "!": operator.ne,
    "!=": operator.ne,
}


@dataclass(frozen=True)
class _Comparison:
    operator: str
    version: Version

    def __call__(self, version: Version) -> bool:
        return _COMPARATORS[self.operator](version, self.version)


@dataclass(frozen=True)
class _Range:
    """Alternatives joined by OR, each a set of comparisons joined by AND."""

    alternatives: tuple[tuple[_Comparison, ...], ...]

    def __call__(self, version: Version) -> bool:
        return any(all(check(version) for check in group) for group in self.alternatives)


def _split_and_trim(text: str) -> list[str]:
    result = []
    last = 0
    last_char = ""
    for index, char in enumerate(text):
        if char == " " and last_char not in {">", "<", "="}:
            if last < index - 1:
                result.append(text[last:index])
            last = index + 1
        elif char != " ":
            last_char = char
    if last < len(text) - 1:
        result.append(text[last:])
    return [part.replace(" ", "") for part in result]


def _split_or_parts(parts: list[str]) -> list[list[str]]:
    groups = []
    last = 0
    for index, part in enumerate(parts):
        if part == "||":
            if index == 0:
                raise ValueError("First element in range is '||'")
            groups.append(parts[last:index])
            last = index + 1
    if last == len(parts):
        raise ValueError("Last element in range is '||'")
    groups.append(parts[last:])
    return groups


def _split_comparator_version(text: str) -> tuple[str, str]:
    index = next((i for i, char in enumerate(text) if char.isdecimal()), -1)
    if index == -1:
        raise ValueError(f"Could not get version from string: {text!r}")
    return text[:index].strip(), text[index:]


def _wildcard_type(version_text: str) -> str | None:
    parts = version_text.split(".")
    if parts[-1] != "x":
        return None
    return {2: "minor", 3: "patch"}.get(len(parts))


def _flatten_wildcard(version_text: str) -> str:
    flat = version_text.replace(".x.x", ".x", 1).replace(".x", ".0", 1)
    if len(flat.split(".")) == 2:
        return flat + ".0"
    return flat


def _increment(version_text: str, position: int) -> str:
    parts = version_text.split(".")
    if position >= len(parts) or not _SIGNED_INT_RE.fullmatch(parts[position]):
        return ""
    parts[position] = str(int(parts[position]) + 1)
    return ".".join(parts)


def _expand_wildcards(groups: list[list[str]]) -> list[list[str]]:
    expanded = []
    for group in groups:
        new_parts = []
        for part in group:
            if "x" in part:
                op, version_text = _split_comparator_version(part)
                kind = _wildcard_type(version_text)
                flat = _flatten_wildcard(version_text)

                result_op = ""
                increment = False
                if op == ">":
                    result_op, increment = ">=", True
                elif op == ">=":
                    result_op = ">="
                elif op == "<":
                    result_op = "<"
                elif op == "<=":
                    result_op, increment = "<", True
                elif op in ("", "=", "=="):
                    new_parts.append(">=" + flat)
                    result_op, increment = "<", True
                elif op in ("!=", "!"):
                    new_parts.append("<" + flat)
                    result_op, increment = ">=", True

                if not increment:
                    result_version = flat
                elif kind == "patch":
                    result_version = _increment(flat, 1)
                elif kind == "minor":
                    result_version = _increment(flat, 0)
                else:
                    result_version = ""
                part = result_op + result_version
            new_parts.append(part)
        expanded.append(new_parts)
    return expanded


def parse_range(text: str) -> Callable[[Version], bool]:
    """Compile a range such as ``>=1.2.0 <2.0.0 || 3.x`` into a predicate."""
    groups = _expand_wildcards(_split_or_parts(_split_and_trim(text)))
    alternatives = []
    for group in groups:
        comparisons = []
        for part in group:
            op, version_text = _split_comparator_version(part)
            if op not in _COMPARATORS:
                raise ValueError(f"Could not parse comparator {op!r} in {part!r}")
            try:
                version = _parse_strict(version_text)
            except ValueError as err:
                raise ValueError(f"Could not parse Range {part!r}: {err}") from err
            comparisons.append(_Comparison(op, version))
        if not comparisons:
            raise ValueError(f"Empty element in range {text!r}")
        alternatives.append(tuple(comparisons))
    return _Range(tuple(alternatives))


def semver_check(range_text: str, version_text: str) -> bool:
    """True when the version satisfies the range, or when either is empty."""
    if not range_text:
        log.debug("Subscription doesn't specify a version, process as update to the latest")
        return True
    if not version_text:
        log.debug("Deployable doesn't specify a version, process as update with the current Deployable")
        return True
    try:
        version_range = parse_range(range_text)
    except ValueError as err:
        log.debug("Version range string %s is invalid due to %s. Won't proceed the update", range_text, err)
        return False
    try:
        version = parse_tolerant(version_text)
    except ValueError as err:
        log.debug("Version string %s is invalid due to %s. Won't proceed the update", version_text, err)
        return False
    return version_range(version)


@dataclass(frozen=True)
class VersionRep:
    """The chosen deployable of a group and the range a newer one must meet."""

    dpl_key: str
    version_range: str


def _deployable_key(deployable: KubeObject) -> str:
    return str(NamespacedName(namespace=deployable.namespace, name=deployable.name))


def _deployable_group(deployable: KubeObject) -> str:
    return deployable.generate_name or deployable.name


def generate_version_set(deployables: Iterable[KubeObject], version_range: str) -> dict[str, VersionRep]:
    """Pick, per deployable group, the highest version meeting the range."""
    version_set: dict[str, VersionRep] = {}
    for deployable in deployables:
        version = deployable.annotations.get(ANNOTATION_DEPLOYABLE_VERSION, "")
        if not semver_check(version_range, version):
            continue

        key = _deployable_key(deployable)
        group = _deployable_group(deployable)
        if not version:
            version = "0.0.0"
        rep = VersionRep(dpl_key=key, version_range=">" + version)

        previous = version_set.get(group)
        if previous is None or semver_check(previous.version_range, version):
            version_set[group] = rep
    return version_set


def is_deployable_in_version_set(version_map: Mapping[str, VersionRep], deployable: KubeObject) -> bool:
    """True when the deployable is the one chosen for its group."""
    rep = version_map.get(_deployable_group(deployable))
    return rep is not None and rep.dpl_key == _deployable_key(deployable)