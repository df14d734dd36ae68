"""Object metadata: names, group/version/kind keys and annotation lookups."""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any

log = logging.getLogger(__name__)

ANNOTATION_HOSTING_DEPLOYABLE = "app.ibm.com/hosting-deployable"
ANNOTATION_HOSTING_SUBSCRIPTION = "app.ibm.com/hosting-subscription"
ANNOTATION_MANAGED_CLUSTER = "app.ibm.com/managed-cluster"
ANNOTATION_LOCAL = "app.ibm.com/is-local-deployable"
ANNOTATION_DEPLOYABLE_VERSION = "app.ibm.com/deployable-version"
ANNOTATION_SUBSCRIPTION = "app.ibm.com/subscription"
ANNOTATION_SYNC_SOURCE = "app.ibm.com/sync-source"


class NotFoundError(LookupError):
    """The requested object does not exist."""


class BadRequestError(ValueError):
    """The request cannot be served as given."""


@dataclass(frozen=True, order=True)
class NamespacedName:
    """A namespace and name pair; renders as ``namespace/name``."""

    namespace: str = ""
    name: str = ""

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True, order=True)
class GroupKind:
    group: str = ""
    kind: str = ""


@dataclass(frozen=True, order=True)
class GroupVersionKind:
    group: str = ""
    version: str = ""
    kind: str = ""

    def group_kind(self) -> GroupKind:
        return GroupKind(group=self.group, kind=self.kind)

    def __str__(self) -> str:
        return f"{self.group}/{self.version}, Kind={self.kind}"


@dataclass(frozen=True, order=True)
class GroupVersionResource:
    group: str = ""
    version: str = ""
    resource: str = ""

    def empty(self) -> bool:
        return not (self.group or self.version or self.resource)


def parse_group_version(text: str) -> tuple[str, str]:
    """Split an apiVersion string into ``(group, version)``."""
    if not text or text == "/":
        return "", ""
    parts = text.split("/")
    if len(parts) == 1:
        return "", text
    if len(parts) == 2:
        return parts[0], parts[1]
    raise ValueError(f"unexpected GroupVersion string: {text}")


@dataclass
class KubeObject:
    """A schemaless API object held as nested dictionaries."""

    data: dict[str, Any] = field(default_factory=dict)

    def _meta(self) -> dict[str, Any]:
        return self.data.get("metadata") or {}

    def _meta_for_write(self) -> dict[str, Any]:
        meta = self.data.get("metadata")
        if not isinstance(meta, dict):
            meta = {}
            self.data["metadata"] = meta
        return meta

    def _set_meta_str(self, key: str, value: str) -> None:
        if value:
            self._meta_for_write()[key] = value
        else:
            self._meta_for_write().pop(key, None)

    def _set_meta_map(self, key: str, value: dict[str, str] | None) -> None:
        if value is None:
            self._meta_for_write().pop(key, None)
        else:
            self._meta_for_write()[key] = dict(value)

    @property
    def name(self) -> str:
        return self._meta().get("name") or ""

    @name.setter
    def name(self, value: str) -> None:
        self._set_meta_str("name", value)

    @property
    def namespace(self) -> str:
        return self._meta().get("namespace") or ""

    @namespace.setter
    def namespace(self, value: str) -> None:
        self._set_meta_str("namespace", value)

    @property
    def generate_name(self) -> str:
        return self._meta().get("generateName") or ""

    @generate_name.setter
    def generate_name(self, value: str) -> None:
        self._set_meta_str("generateName", value)

    @property
    def resource_version(self) -> str:
        return self._meta().get("resourceVersion") or ""

    @resource_version.setter
    def resource_version(self, value: str) -> None:
        self._set_meta_str("resourceVersion", value)

    @property
    def uid(self) -> str:
        return self._meta().get("uid") or ""

    @uid.setter
    def uid(self, value: str) -> None:
        self._set_meta_str("uid", value)

    @property
    def self_link(self) -> str:
        return self._meta().get("selfLink") or ""

    @self_link.setter
    def self_link(self, value: str) -> None:
        self._set_meta_str("selfLink", value)

    @property
    def annotations(self) -> dict[str, str]:
        return dict(self._meta().get("annotations") or {})

    @annotations.setter
    def annotations(self, value: dict[str, str] | None) -> None:
        self._set_meta_map("annotations", value)

    @property
    def labels(self) -> dict[str, str]:
        return dict(self._meta().get("labels") or {})

    @labels.setter
    def labels(self, value: dict[str, str] | None) -> None:
        self._set_meta_map("labels", value)

    @property
    def finalizers(self) -> list[str]:
        return list(self._meta().get("finalizers") or [])

    @finalizers.setter
    def finalizers(self, value: list[str] | None) -> None:
        if value is None:
            self._meta_for_write().pop("finalizers", None)
        else:
            self._meta_for_write()["finalizers"] = list(value)

    @property
    def kind(self) -> str:
        return self.data.get("kind") or ""

    @kind.setter
    def kind(self, value: str) -> None:
        self.data["kind"] = value

    @property
    def api_version(self) -> str:
        return self.data.get("apiVersion") or ""

    @api_version.setter
    def api_version(self, value: str) -> None:
        self.data["apiVersion"] = value

    @property
    def group_version_kind(self) -> GroupVersionKind:
        try:
            group, version = parse_group_version(self.api_version)
        except ValueError:
            group, version = "", ""
        return GroupVersionKind(group=group, version=version, kind=self.kind)

    @group_version_kind.setter
    def group_version_kind(self, gvk: GroupVersionKind) -> None:
        self.api_version = f"{gvk.group}/{gvk.version}" if gvk.group else gvk.version
        self.kind = gvk.kind

    def deep_copy(self) -> KubeObject:
        return KubeObject(copy.deepcopy(self.data))

    def to_json(self) -> str:
        return json.dumps(self.data, sort_keys=True, separators=(",", ":"))


def namespaced_name_format(text: str) -> NamespacedName:
    """Parse ``namespace/name``; malformed input yields an empty name."""
    if not text:
        return NamespacedName()
    parts = text.split("/")
    if len(parts) != 2:
        log.error("Illegal string, want namespace/name, but get %s", text)
        return NamespacedName()
    return NamespacedName(namespace=parts[0], name=parts[1])


def _name_from_annotation(obj: KubeObject | None, key: str) -> NamespacedName | None:
    if obj is None:
        return None
    value = obj.annotations.get(key, "")
    if not value:
        return None
    parts = value.split("/")
    if len(parts) != 2:
        return None
    return NamespacedName(namespace=parts[0], name=parts[1])


def is_resource_owned_by_cluster(obj: KubeObject | None, cluster: NamespacedName) -> bool:
    """True when the managed-cluster annotation names this cluster."""
    if obj is None:
        return False
    return obj.annotations.get(ANNOTATION_MANAGED_CLUSTER) == str(cluster)


def is_local_deployable(instance: KubeObject | None) -> bool:
    """True when the deployable is marked for local deployment."""
    if instance is None:
        return False
    return instance.annotations.get(ANNOTATION_LOCAL) == "true"


def get_cluster_from_resource_object(obj: KubeObject | None) -> NamespacedName | None:
    return _name_from_annotation(obj, ANNOTATION_MANAGED_CLUSTER)


def get_host_deployable_from_object(obj: KubeObject | None) -> NamespacedName | None:
    return _name_from_annotation(obj, ANNOTATION_HOSTING_DEPLOYABLE)


def get_host_subscription_from_object(obj: KubeObject | None) -> NamespacedName | None:
    return _name_from_annotation(obj, ANNOTATION_HOSTING_SUBSCRIPTION)


def get_source_from_object(obj: KubeObject | None) -> str:
    if obj is None:
        return ""
    return obj.annotations.get(ANNOTATION_SYNC_SOURCE, "")