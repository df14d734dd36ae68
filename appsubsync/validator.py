"""Pruning registered templates that a full sync pass no longer vouches for."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .meta import GroupVersionKind, NamespacedName, get_host_deployable_from_object
from .synchronizer import KubeSynchronizer

log = logging.getLogger(__name__)


@dataclass
class Validator:
    """Collects the resource keys seen valid during one pass of a sync source."""

    synchronizer: KubeSynchronizer
    source: str
    store: dict[GroupVersionKind, set[str]] = field(default_factory=dict)

    def add_valid_resource(self, gvk: GroupVersionKind, host: NamespacedName, deployable: NamespacedName) -> None:
        """Mark the resource of this kind, host and deployable as still wanted."""
        key = self.synchronizer.generate_resource_map_key(host, deployable)
        self.store.setdefault(gvk, set()).add(key)

    def is_valid(self, gvk: GroupVersionKind, key: str) -> bool:
        """True when the key was added for the kind."""
        return key in self.store.get(gvk, set())


def _deregister(synchronizer: KubeSynchronizer, host: NamespacedName, deployable: NamespacedName, source: str) -> None:
    try:
        synchronizer.deregister_template(host, deployable, source)
    except Exception as err:
        log.error("Failed to deregister template with error: %s", err)


def cleanup_by_host(synchronizer: KubeSynchronizer, host: NamespacedName, source: str) -> None:
    """Deregister every template hosted by ``host`` that came from ``source``."""
    for resmap in list(synchronizer.kube_resources.values()):
        for unit in list(resmap.template_map.values()):
            unit_host = synchronizer.extension.get_host_from_object(unit)
            if unit_host is None or str(unit_host) != str(host):
                continue
            deployable = get_host_deployable_from_object(unit)
            if deployable is None:
                log.debug("Template of host %s has no hosting deployable, skipping", unit_host)
                continue
            log.debug("Start deregister, with host: %s, dpl: %s", unit_host, deployable)
            _deregister(synchronizer, unit_host, deployable, source)


def create_validator(synchronizer: KubeSynchronizer, source: str) -> Validator:
    """A fresh validator for one pass of the given sync source."""
    return Validator(synchronizer=synchronizer, source=source)


def apply_validator(synchronizer: KubeSynchronizer, validator: Validator) -> None:
    """Deregister templates of the validator's source that it did not mark valid."""
    for gvk, resmap in list(synchronizer.kube_resources.items()):
        for key, unit in list(resmap.template_map.items()):
            if validator.is_valid(gvk, key):
                continue
            host = synchronizer.extension.get_host_from_object(unit)
            deployable = get_host_deployable_from_object(unit)
            if host is None or deployable is None:
                log.debug("Template %s has no host or deployable, skipping", key)
                continue
            log.debug("Start deregister, with resgvk: %s, reskey: %s", gvk, key)
            _deregister(synchronizer, host, deployable, validator.source)