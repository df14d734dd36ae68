"""Label selectors and label matching."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Mapping

log = logging.getLogger(__name__)

IN = "In"
NOT_IN = "NotIn"
EXISTS = "Exists"
DOES_NOT_EXIST = "DoesNotExist"
_EQUALS = "="

_NAME_RE = re.compile(r"^([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9]$")
_VALUE_RE = re.compile(r"^(([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9])?$")
_SUBDOMAIN_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")


class InvalidSelectorError(ValueError):
    """A label selector cannot be turned into a selector."""


@dataclass(frozen=True)
class LabelSelectorRequirement:
    key: str
    operator: str
    values: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(self.values))


@dataclass
class LabelSelector:
    match_labels: dict[str, str] | None = None
    match_expressions: list[LabelSelectorRequirement] | None = None


@dataclass(frozen=True)
class _Requirement:
    key: str
    operator: str
    values: frozenset[str]

    def matches(self, labels: Mapping[str, str]) -> bool:
        present = self.key in labels
        if self.operator in (_EQUALS, IN):
            return present and labels[self.key] in self.values
        if self.operator == NOT_IN:
            return not present or labels[self.key] not in self.values
        if self.operator == EXISTS:
            return present
        return not present


@dataclass(frozen=True)
class Selector:
    """A compiled selector; with no requirements it matches everything."""

    requirements: tuple[_Requirement, ...] = ()
    match_none: bool = False

    def matches(self, labels: Mapping[str, str] | None) -> bool:
        if self.match_none:
            return False
        labels = labels or {}
        return all(req.matches(labels) for req in self.requirements)


def _validate_key(key: str) -> None:
    parts = key.split("/")
    if len(parts) == 1:
        name = parts[0]
    elif len(parts) == 2:
        prefix, name = parts
        if not prefix:
            raise InvalidSelectorError(f"invalid label key {key!r}: prefix part must be non-empty")
        if len(prefix) > 253 or not _SUBDOMAIN_RE.match(prefix):
            raise InvalidSelectorError(f"invalid label key {key!r}: prefix must be a DNS subdomain")
    else:
        raise InvalidSelectorError(f"invalid label key {key!r}: at most one '/' is allowed")
    if not name:
        raise InvalidSelectorError(f"invalid label key {key!r}: name part must be non-empty")
    if len(name) > 63 or not _NAME_RE.match(name):
        raise InvalidSelectorError(f"invalid label key {key!r}: name part is not a qualified name")


def _validate_value(value: str) -> None:
    if len(value) > 63 or not _VALUE_RE.match(value):
        raise InvalidSelectorError(f"invalid label value {value!r}")


def _requirement(key: str, operator: str, values: Iterable[str]) -> _Requirement:
    _validate_key(key)
    values = list(values)
    if operator in (IN, NOT_IN) and not values:
        raise InvalidSelectorError("for 'in', 'notin' operators, values set can't be empty")
    if operator == _EQUALS and len(values) != 1:
        raise InvalidSelectorError("exact-match compatibility requires one single value")
    if operator in (EXISTS, DOES_NOT_EXIST) and values:
        raise InvalidSelectorError("values set must be empty for exists and does not exist")
    for value in values:
        _validate_value(value)
    return _Requirement(key=key, operator=operator, values=frozenset(values))


def convert_labels(selector: LabelSelector | None) -> Selector:
    """Compile a label selector; ``None`` or an empty selector matches all."""
    if selector is None:
        return Selector()
    match_labels = selector.match_labels or {}
    expressions = selector.match_expressions or []
    if not match_labels and not expressions:
        return Selector()

    requirements = [_requirement(k, _EQUALS, [v]) for k, v in match_labels.items()]
    for expr in expressions:
        if expr.operator not in (IN, NOT_IN, EXISTS, DOES_NOT_EXIST):
            raise InvalidSelectorError(f"{expr.operator!r} is not a valid pod selector operator")
        requirements.append(_requirement(expr.key, expr.operator, expr.values))
    requirements.sort(key=lambda req: req.key)
    return Selector(tuple(requirements))


def match_label_for_sub_and_dpl(selector: LabelSelector | None, labels: Mapping[str, str] | None) -> bool:
    """Match only the selector's match-labels against the given labels."""
    log.debug("sub label: %r, dpl label: %r", selector, labels)
    if selector is None:
        return True
    if not labels:
        return False
    return all(k in labels and labels[k] == v for k, v in (selector.match_labels or {}).items())


def label_checker(selector: LabelSelector | None, labels: Mapping[str, str] | None) -> bool:
    """Full selector match; an invalid selector rejects every label set."""
    try:
        compiled = convert_labels(selector)
    except InvalidSelectorError as err:
        log.info("Can't process labels due to: %s. In this case, all labels will be rejected", err)
        return False
    return compiled.matches(labels)


def labels_checker(selector: LabelSelector | None, labels: Mapping[str, str] | None) -> bool:
    """Check labels against a selector; an invalid selector matches nothing."""
    try:
        compiled = convert_labels(selector)
    except InvalidSelectorError as err:
        log.error("Failed to set label selector: %r err: %s", selector, err)
        compiled = Selector(match_none=True)
    return compiled.matches(labels)


def keywords_checker(selector: LabelSelector | None, keywords: Iterable[str]) -> bool:
    """Treat each keyword as a label set to ``"true"`` and check the selector."""
    return labels_checker(selector, {k: "true" for k in keywords})