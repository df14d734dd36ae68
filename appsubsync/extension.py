"""Ownership and host-status rules the synchronizer applies to objects."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from .meta import (
    ANNOTATION_HOSTING_SUBSCRIPTION,
    ANNOTATION_MANAGED_CLUSTER,
    BadRequestError,
    GroupKind,
    KubeObject,
    NamespacedName,
    get_host_subscription_from_object,
)
from .status import StatusClient, update_deployable_status, update_subscription_status

log = logging.getLogger(__name__)

DEPLOYABLE_GROUP_KIND = GroupKind(group="app.ibm.com", kind="Deployable")


class Extension(Protocol):
    """The pluggable rules of a synchronizer."""

    def update_host_status(self, error: BaseException | None, template: KubeObject, status: Any) -> None:
        """Record the outcome of applying a template on its host."""

    def get_host_from_object(self, obj: KubeObject | None) -> NamespacedName | None:
        """The host that owns the object, if any."""

    def set_synchronizer_to_object(self, obj: KubeObject, sync_id: NamespacedName | None) -> None:
        """Mark the object as handled by the synchronizer."""

    def set_host_to_object(self, obj: KubeObject, host: NamespacedName, sync_id: NamespacedName | None) -> None:
        """Mark the object as owned by the host."""

    def is_object_owned_by_host(
        self, obj: KubeObject | None, host: NamespacedName, sync_id: NamespacedName | None
    ) -> bool:
        """True when the host owns the object."""

    def is_object_owned_by_synchronizer(self, obj: KubeObject | None, sync_id: NamespacedName | None) -> bool:
        """True when the synchronizer owns the object."""

    def is_ignored_group_kind(self, group_kind: GroupKind) -> bool:
        """True when objects of this group kind are never synchronized."""


@dataclass
class SubscriptionExtension:
    """Rules for objects hosted by subscriptions or deployables."""

    local_client: StatusClient | None = None
    remote_client: StatusClient | None = None
    ignored_group_kinds: set[GroupKind] = field(default_factory=lambda: {DEPLOYABLE_GROUP_KIND})

    def update_host_status(self, error: BaseException | None, template: KubeObject, status: Any) -> None:
        """Write status to the hosting subscription, or else to the hosting deployable."""
        host = self.get_host_from_object(template)
        if host is None or str(host) == "/":
            if self.remote_client is None:
                raise BadRequestError("no client to update deployable status")
            update_deployable_status(self.remote_client, error, template, status)
            return
        if self.local_client is None:
            raise BadRequestError("no client to update subscription status")
        update_subscription_status(self.local_client, error, template, status)

    def get_host_from_object(self, obj: KubeObject | None) -> NamespacedName | None:
        return get_host_subscription_from_object(obj)

    def set_synchronizer_to_object(self, obj: KubeObject | None, sync_id: NamespacedName | None) -> None:
        if obj is None:
            raise ValueError("trying to set host to nil object")
        annotations = obj.annotations
        if ANNOTATION_MANAGED_CLUSTER in annotations:
            del annotations[ANNOTATION_MANAGED_CLUSTER]
            obj.annotations = annotations

    def set_host_to_object(
        self, obj: KubeObject | None, host: NamespacedName, sync_id: NamespacedName | None
    ) -> None:
        if obj is None:
            raise ValueError("trying to set host to nil object")
        annotations = obj.annotations
        annotations[ANNOTATION_HOSTING_SUBSCRIPTION] = str(host)
        obj.annotations = annotations
        self.set_synchronizer_to_object(obj, sync_id)

    def is_object_owned_by_synchronizer(self, obj: KubeObject | None, sync_id: NamespacedName | None) -> bool:
        if obj is None:
            return False
        return ANNOTATION_MANAGED_CLUSTER not in obj.annotations

    def is_object_owned_by_host(
        self, obj: KubeObject | None, host: NamespacedName, sync_id: NamespacedName | None
    ) -> bool:
        if not self.is_object_owned_by_synchronizer(obj, sync_id):
            log.debug("Resource %r is not owned by %s", obj, sync_id)
            return False
        owner = get_host_subscription_from_object(obj)
        if owner is None:
            return False
        return owner.namespace == host.namespace and owner.name == host.name

    def is_ignored_group_kind(self, group_kind: GroupKind) -> bool:
        return group_kind in self.ignored_group_kinds


default_extension = SubscriptionExtension()