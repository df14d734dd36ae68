"""Applying per-cluster and per-package overrides to resource templates."""

from __future__ import annotations

import copy
import logging
from typing import Any, Mapping, Sequence

from .meta import KubeObject, NamespacedName

log = logging.getLogger(__name__)

Override = Mapping[str, Any]


def _spec(obj: KubeObject | None) -> dict[str, Any]:
    if obj is None:
        return {}
    return obj.data.get("spec") or {}


def prepare_overrides(cluster: NamespacedName, instance: KubeObject | None) -> list[Override] | None:
    """Return the overrides a deployable carries for the given cluster.

    The last matching entry wins; an entry named ``/`` matches the empty
    (local) cluster.
    """
    entries = _spec(instance).get("overrides")
    if entries is None:
        return None

    overrides: list[Override] | None = None
    for entry in entries:
        cluster_name = entry.get("clusterName") or ""
        if cluster_name != cluster.name and (cluster_name != "/" or cluster.name or cluster.namespace):
            continue
        found = entry.get("clusterOverrides")
        overrides = None if found is None else list(found)
    return overrides


def _set_nested_field(obj: dict[str, Any], value: Any, fields: Sequence[str]) -> None:
    current = obj
    for index, name in enumerate(fields[:-1]):
        if name in current:
            child = current[name]
            if not isinstance(child, dict):
                path = ".".join(fields[: index + 1])
                raise ValueError(f"value cannot be set because {path} is not a map")
            current = child
        else:
            child = {}
            current[name] = child
            current = child
    current[fields[-1]] = copy.deepcopy(value)


def override_template(template: KubeObject | None, overrides: Sequence[Override] | None) -> KubeObject | None:
    """Return a copy of the template with each override's value set at its path.

    Raises ``ValueError`` when an override is not a mapping or has no
    string path.
    """
    if template is None:
        return None
    result = template.deep_copy()
    if overrides is None:
        log.debug("No instance or no override for template")
        return result

    for override in overrides:
        if not isinstance(override, Mapping):
            raise ValueError("can not parse override")
        path = override.get("path")
        if not isinstance(path, str):
            raise ValueError("can not convert path of override")
        try:
            _set_nested_field(result.data, override.get("value"), path.split("."))
        except ValueError as err:
            log.error("Failed to set nested field for overriding template with error: %s", err)

    log.debug("Finished overriding template: %r", result)
    return result


def _subscription_overrides(package_name: str, instance: KubeObject | None) -> list[Override] | None:
    entries = _spec(instance).get("packageOverrides")
    if entries is None:
        return None
    overrides = [
        override
        for entry in entries
        if (entry.get("packageName") or "") == package_name
        for override in entry.get("packageOverrides") or []
    ]
    return overrides or None


def override_resource_by_subscription(
    template: KubeObject | None, package_name: str, instance: KubeObject | None
) -> KubeObject | None:
    """Apply every override a subscription declares for the named package."""
    return override_template(template, _subscription_overrides(package_name, instance))


def filter_package_out(package_filter: Mapping[str, Any] | None, deployable: KubeObject) -> bool:
    """True when the filter's annotations reject the deployable."""
    if package_filter is None:
        return False
    wanted = package_filter.get("annotations")
    if wanted is None:
        return False
    present = deployable.annotations
    for key, value in wanted.items():
        if present.get(key, "") != value:
            log.debug("Annotation filter does not match. Sub annotation is: %r; Dpl annotation is %r", wanted, present)
            return True
    return False