"""Recording package and deployable status on their hosting objects."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from .meta import (
    BadRequestError,
    KubeObject,
    NamespacedName,
    get_host_deployable_from_object,
    get_host_subscription_from_object,
)

log = logging.getLogger(__name__)

PHASE_SUBSCRIBED = "Subscribed"
PHASE_FAILED = "Failed"
PHASE_DEPLOYED = "Deployed"
IN_CLUSTER_KEY = "/"


class StatusClient(Protocol):
    """Reads objects and writes their status sub-resource."""

    def get(self, key: NamespacedName) -> KubeObject:
        """Return the object, raising ``NotFoundError`` when it is absent."""

    def update_status(self, obj: KubeObject) -> None:
        """Persist the object's status."""


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _status_of(obj: KubeObject) -> dict[str, Any]:
    status = obj.data.get("status")
    if not isinstance(status, dict):
        status = {}
        obj.data["status"] = status
    return status


def _store_resource_status(target: dict[str, Any], status: Any) -> None:
    try:
        target["resourceStatus"] = json.loads(json.dumps(status))
    except (TypeError, ValueError) as err:
        log.info("Failed to marshal status %r with err: %s", status, err)
        target.pop("resourceStatus", None)


def subscription_update_predicate(old: KubeObject, new: KubeObject) -> bool:
    """Decide whether a subscription update is worth reconciling."""
    if new.finalizers:
        return True
    if old.labels != new.labels:
        return True
    if old.annotations != new.annotations:
        return True
    if old.data.get("spec") != new.data.get("spec"):
        return True
    new_phase = (new.data.get("status") or {}).get("phase") or ""
    old_phase = (old.data.get("status") or {}).get("phase") or ""
    if not new_phase or new_phase != old_phase:
        log.debug("We care phase.. %s vs %s", new_phase, old_phase)
        return True
    log.debug("Something we don't care changed")
    return False


def set_in_cluster_package_status(
    subscription_status: dict[str, Any],
    package_name: str,
    package_error: BaseException | None,
    status: Any,
) -> None:
    """Fill in the in-cluster status entry of one package."""
    statuses = subscription_status.get("statuses")
    if statuses is None:
        statuses = {}
        subscription_status["statuses"] = statuses

    cluster = statuses.get(IN_CLUSTER_KEY)
    if cluster is None or cluster.get("packages") is None:
        cluster = {"packages": {}}
    packages = cluster["packages"]

    package = packages.get(package_name)
    if package is None:
        package = {}

    if package_error is None:
        package.update(phase=PHASE_SUBSCRIBED, reason="", message="")
    else:
        package.update(phase=PHASE_FAILED, reason=str(package_error))

    package["lastUpdateTime"] = _now()
    if status is not None:
        _store_resource_status(package, status)
    else:
        package.pop("resourceStatus", None)

    log.debug("Set package status: %r", package)
    packages[package_name] = package
    statuses[IN_CLUSTER_KEY] = cluster
    subscription_status["lastUpdateTime"] = _now()


def update_subscription_status(
    client: StatusClient,
    template_error: BaseException | None,
    template: KubeObject | None,
    status: Any,
) -> None:
    """Record a template's outcome on its hosting subscription.

    Templates without a hosting subscription are ignored; errors from the
    client propagate.
    """
    if template is None:
        return
    subscription_key = get_host_subscription_from_object(template)
    if subscription_key is None:
        log.info("The template %s/%s does not have hosting subscription", template.namespace, template.name)
        return

    subscription = client.get(subscription_key)

    deployable_key = get_host_deployable_from_object(template)
    if deployable_key is None:
        raise BadRequestError(
            f"Invalid status structure in subscription: {subscription.namespace}/{subscription.name}"
            " nil hosting deployable"
        )

    set_in_cluster_package_status(_status_of(subscription), deployable_key.name, template_error, status)
    client.update_status(subscription)


def validate_packages_in_subscription_status(
    client: StatusClient, subscription: KubeObject, packages: Iterable[str]
) -> bool:
    """Align the in-cluster package entries with the given package names.

    Stale entries are dropped, missing ones added, and the status is written
    back when anything changed or a package has failed. Returns whether an
    update was made.
    """
    status = _status_of(subscription)
    wanted = set(packages)
    updated = False

    statuses = status.get("statuses")
    if statuses is None:
        statuses = {}
        status["statuses"] = statuses
        updated = True

    cluster = statuses.get(IN_CLUSTER_KEY)
    if cluster is None:
        cluster = {}
        updated = True

    entries = cluster.get("packages")
    if entries is None:
        entries = {}
        cluster["packages"] = entries
        updated = True

    for name in list(entries):
        if name not in wanted:
            del entries[name]
            updated = True
        else:
            if (entries[name] or {}).get("phase") == PHASE_FAILED:
                updated = True
            wanted.discard(name)

    for name in sorted(wanted):
        entries[name] = {}
        updated = True

    if updated:
        statuses[IN_CLUSTER_KEY] = cluster
        status["lastUpdateTime"] = _now()
        client.update_status(subscription)
    return updated


def update_deployable_status(
    client: StatusClient,
    template_error: BaseException | None,
    template: KubeObject | None,
    status: Any,
) -> None:
    """Record a template's outcome on its hosting deployable."""
    host = get_host_deployable_from_object(template)
    if host is None:
        raise BadRequestError(f"Failed to find hosting deployable for {template!r}")

    deployable = client.get(host)
    log.debug("Trying to update deployable status: %s %s", host, template_error)

    deployable_status = _status_of(deployable)
    deployable_status.pop("propagatedStatus", None)
    if template_error is None:
        deployable_status.update(phase=PHASE_DEPLOYED, reason="")
    else:
        deployable_status.update(phase=PHASE_FAILED, reason=str(template_error))

    if status is not None:
        _store_resource_status(deployable_status, status)

    deployable_status["lastUpdateTime"] = _now()
    try:
        client.update_status(deployable)
    except Exception:
        log.error("Failed to update status of deployable %r", deployable)
        raise