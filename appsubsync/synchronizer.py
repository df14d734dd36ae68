"""Keeping a cluster's resources in line with registered deployable templates."""

from __future__ import annotations

import copy
import functools
import json
import logging
import threading
from typing import Any, Mapping

from .client import (
    DELETE_PROPAGATION_BACKGROUND,
    ClusterClient,
    ResourceClient,
    ResourceMap,
    TemplateUnit,
)
from .discovery import CRD_KIND, CRD_RESOURCE_NAME, discover_resources, get_validated_gvk
from .extension import Extension, default_extension
from .meta import (
    ANNOTATION_HOSTING_DEPLOYABLE,
    ANNOTATION_SYNC_SOURCE,
    BadRequestError,
    GroupVersionKind,
    GroupVersionResource,
    KubeObject,
    NamespacedName,
    NotFoundError,
    get_host_deployable_from_object,
    get_source_from_object,
    is_local_deployable,
)
from .overrides import override_template, prepare_overrides

log = logging.getLogger(__name__)

SERVICE_GVR = GroupVersionResource(version="v1", resource="services")
NAMESPACE_GVR = GroupVersionResource(version="v1", resource="namespaces")

_default_synchronizer: KubeSynchronizer | None = None


def _merge_patch_additions(current: Mapping[str, Any], modified: Mapping[str, Any]) -> dict[str, Any]:
    patch: dict[str, Any] = {}
    for key, value in modified.items():
        if key not in current:
            patch[key] = copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(current[key], dict):
            nested = _merge_patch_additions(current[key], value)
            if nested:
                patch[key] = nested
        elif current[key] != value:
            patch[key] = copy.deepcopy(value)
    return patch


def _merge_patch_deletions(original: Mapping[str, Any], modified: Mapping[str, Any]) -> dict[str, Any]:
    patch: dict[str, Any] = {}
    for key, value in original.items():
        if key not in modified:
            patch[key] = None
        elif isinstance(value, dict) and isinstance(modified[key], dict):
            nested = _merge_patch_deletions(value, modified[key])
            if nested:
                patch[key] = nested
    return patch


def _merge_into(target: dict[str, Any], extra: Mapping[str, Any]) -> dict[str, Any]:
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge_into(target[key], value)
        else:
            target[key] = value
    return target


def three_way_merge_patch(
    original: Mapping[str, Any], modified: Mapping[str, Any], current: Mapping[str, Any]
) -> dict[str, Any]:
    """A JSON merge patch taking ``current`` to ``modified``.

    Fields present in ``current`` but absent from ``modified`` are kept,
    unless ``original`` had them and ``modified`` dropped them.
    """
    return _merge_into(_merge_patch_additions(current, modified), _merge_patch_deletions(original, modified))


def _template_from_instance(instance: KubeObject) -> KubeObject | None:
    raw = (instance.data.get("spec") or {}).get("template")
    if raw is None:
        return None
    if isinstance(raw, KubeObject):
        data = copy.deepcopy(raw.data)
    elif isinstance(raw, (str, bytes, bytearray)):
        data = json.loads(raw)
    elif isinstance(raw, Mapping):
        data = copy.deepcopy(dict(raw))
    else:
        raise BadRequestError(f"unsupported template type {type(raw).__name__}")
    if not isinstance(data, dict):
        raise BadRequestError("template is not an object")
    return KubeObject(data)


class KubeSynchronizer:
    """Registry of resource templates applied to one cluster.

    The clients serve resources and also act as status clients for the
    extension's host status updates.
    """

    def __init__(
        self,
        local_client: ClusterClient,
        remote_client: Any = None,
        sync_id: NamespacedName | None = None,
        interval: float = 0,
        extension: Extension | None = None,
    ) -> None:
        self.interval = interval
        self.local_client = local_client
        self.remote_client = remote_client if remote_client is not None else local_client
        self.sync_id = sync_id
        self.extension: Extension = extension if extension is not None else default_extension
        self.kube_resources: dict[GroupVersionKind, ResourceMap] = {}

    # discovery and watching

    def discover(self) -> None:
        """Refresh the registry of resource kinds from the cluster."""
        discover_resources(self.local_client, self.kube_resources, self.extension, self._watch)

    def _watch(self, gvr: GroupVersionResource, gvk: GroupVersionKind) -> None:
        watcher = getattr(self.local_client, "watch", None)
        if callable(watcher):
            watcher(gvr, functools.partial(self._on_server_event, gvk))

    def _on_server_event(self, gvk: GroupVersionKind, obj: KubeObject) -> None:
        if obj.kind == CRD_KIND or self.extension.is_object_owned_by_synchronizer(obj, self.sync_id):
            resmap = self.kube_resources.get(gvk)
            if resmap is not None:
                resmap.server_updated = True

    def get_validated_gvk(self, gvk: GroupVersionKind) -> GroupVersionKind | None:
        """The kind a template of this kind is registered under, or ``None``."""
        return get_validated_gvk(gvk, self.kube_resources, self.extension)

    # running

    def start(self, stop_event: threading.Event) -> None:
        """Wait one interval, then keep house until ``stop_event`` is set."""
        if stop_event.wait(self.interval):
            return
        while not stop_event.is_set():
            self.house_keeping()
            stop_event.wait(self.interval)

    def house_keeping(self) -> None:
        """Align cluster objects with the registered templates."""
        crd_updated = False
        for gvk, res in list(self.kube_resources.items()):
            log.debug("Applying templates in gvk: %s", gvk)
            failed = False
            if res.server_updated:
                try:
                    self.check_server_objects(res)
                except Exception as err:
                    log.error("Error in checking server objects of gvk: %s error: %s skipping", gvk, err)
                    failed = True
                if res.group_version_resource.resource == CRD_RESOURCE_NAME:
                    log.debug("CRD updated, discovering")
                    crd_updated = True
                res.server_updated = False
            if failed:
                continue
            self._apply_kind_templates(res)

        if crd_updated:
            self.discover()

    def _resource_client(self, gvr: GroupVersionResource, namespaced: bool, namespace: str) -> ResourceClient:
        return self.local_client.resource(gvr, namespace if namespaced else "")

    def check_server_objects(self, resource_map: ResourceMap | None) -> None:
        """Harvest owned objects into the registry and restore drifted ones."""
        if resource_map is None:
            raise BadRequestError("Checking server objects with nil map")

        gvr = resource_map.group_version_resource
        log.debug("Checking server objects: %s", gvr)
        for obj in self.local_client.resource(gvr).list():
            if not self.extension.is_object_owned_by_synchronizer(obj, self.sync_id):
                continue
            host = self.extension.get_host_from_object(obj)
            deployable = get_host_deployable_from_object(obj)
            source = get_source_from_object(obj)
            if deployable is None or host is None:
                continue

            key = self.generate_resource_map_key(host, deployable)
            unit = resource_map.template_map.get(key)
            if unit is None:
                log.debug("Harvesting template from cluster: %s", key)
                resource_map.template_map[key] = TemplateUnit.from_object(obj, source)
                continue

            if unit.source != source:
                log.debug("Resource %s owned by other source, skipping", deployable)
                continue

            status = obj.data.pop("status", None)
            try:
                self.extension.update_host_status(None, unit, status)
            except Exception as err:
                log.error("Failed to update host status with error: %s", err)

            if unit.resource_updated:
                continue

            if obj.data != unit.data:
                new_obj = unit.template.deep_copy()
                new_obj.resource_version = obj.resource_version
                client = self._resource_client(gvr, resource_map.namespaced, obj.namespace)
                client.update(new_obj)
                unit.resource_updated = True
            resource_map.template_map[key] = unit

    # applying

    def _apply_kind_templates(self, res: ResourceMap) -> None:
        gvr = res.group_version_resource
        for key, unit in list(res.template_map.items()):
            try:
                self.apply_template(gvr, res.namespaced, key, unit, gvr == SERVICE_GVR)
            except Exception as err:
                log.error("Failed to apply kind template %r with error: %s", unit, err)

    def apply_template(
        self,
        resource: GroupVersionResource,
        namespaced: bool,
        key: str,
        template_unit: TemplateUnit,
        is_service: bool,
    ) -> None:
        """Create the template's object, or update it when not yet applied."""
        log.debug("Applying (key: %s) template, updated: %s", key, template_unit.resource_updated)
        client = self._resource_client(resource, namespaced, template_unit.namespace)
        try:
            obj = client.get(template_unit.name)
        except NotFoundError:
            self._create_resource(client, template_unit)
            return
        if not template_unit.resource_updated:
            self._update_resource(client, obj, template_unit, is_service)

    def _create_resource(self, client: ResourceClient, unit: TemplateUnit) -> None:
        try:
            try:
                created = client.create(unit.template)
            except NotFoundError:
                namespace = KubeObject({"apiVersion": "v1", "kind": "Namespace", "metadata": {}})
                namespace.name = unit.namespace
                self.local_client.resource(NAMESPACE_GVR).create(namespace)
                created = client.create(unit.template)
        except Exception as err:
            unit.resource_updated = False
            log.error("Failed to apply resource with error: %s", err)
            raise

        unit.resource_updated = True
        status = created.data.get("status") if created is not None else None
        self.extension.update_host_status(None, unit, status)

    def _update_resource(self, client: ResourceClient, obj: KubeObject, unit: TemplateUnit, is_service: bool) -> None:
        owner = self.extension.get_host_from_object(unit)
        if owner is not None and not self.extension.is_object_owned_by_host(obj, owner, self.sync_id):
            message = f"Obj {unit.namespace}/{unit.name} exists and owned by others, backoff"
            log.info(message)
            unit.resource_updated = False
            self.extension.update_host_status(BadRequestError(message), unit, None)
            return

        error: Exception | None = None
        try:
            if is_service:
                patch = three_way_merge_patch(unit.data, unit.data, obj.data)
                client.patch(obj.name, json.dumps(patch).encode("utf-8"))
            else:
                new_obj = unit.template.deep_copy()
                new_obj.resource_version = obj.resource_version
                client.update(new_obj)
        except Exception as err:
            log.error("Failed to update resource with error: %s", err)
            error = err
        else:
            unit.resource_updated = True

        try:
            self.extension.update_host_status(error, unit, obj.data.get("status"))
        except Exception as err:
            log.error("Failed to update host status with error: %s", err)

    # registry

    def deregister_template(self, host: NamespacedName, deployable: NamespacedName, source: str) -> None:
        """Drop the deployable's templates from this source and delete owned objects."""
        log.debug("Deleting template %s for source: %s", deployable, source)
        key = self.generate_resource_map_key(host, deployable)
        for resmap in list(self.kube_resources.values()):
            unit = resmap.template_map.get(key)
            if unit is None or unit.source != source:
                continue
            del resmap.template_map[key]

            gvr = resmap.group_version_resource
            if gvr.empty():
                continue
            client = self._resource_client(gvr, resmap.namespaced, unit.namespace)
            try:
                target = client.get(unit.name)
            except Exception:
                continue
            if not self.extension.is_object_owned_by_host(target, host, self.sync_id):
                continue

            error: Exception | None = None
            try:
                client.delete(unit.name, DELETE_PROPAGATION_BACKGROUND)
            except Exception as err:
                log.error("Failed to delete template object, with error: %s", err)
                error = err
            try:
                self.extension.update_host_status(error, unit, None)
            except Exception as err:
                log.error("Failed to update host status, with error: %s", err)

    def register_template(self, host: NamespacedName, instance: KubeObject, source: str) -> None:
        """Register the resource in a deployable's template for this host and source."""
        template = _template_from_instance(instance)
        if template is None:
            log.warning("Processing local deployable without template: %r", instance)
            return

        if not template.kind:
            raise BadRequestError(
                f"Failed to update template with empty kind. gvk:{template.group_version_kind}"
            )
        if not template.name:
            template.name = instance.name

        labels = template.labels
        labels.update(instance.labels)
        template.labels = labels

        gvk = template.group_version_kind
        valid = self.get_validated_gvk(gvk)
        if valid is None:
            raise BadRequestError(f"GroupVersionKind of Template is not supported. {gvk}")
        template.group_version_kind = valid

        resmap = self.kube_resources.get(valid)
        if resmap is None:
            resmap = ResourceMap(namespaced=True)

        if resmap.namespaced and not template.namespace:
            template.namespace = instance.namespace

        deployable = NamespacedName(namespace=instance.namespace, name=instance.name)
        key = self.generate_resource_map_key(host, deployable)

        if instance.finalizers:
            log.debug("Deployable has finalizers, ready to delete object")
            self._deregister_quietly(host, deployable, source)
            return

        existing = resmap.template_map.get(key)
        if existing is not None and not self.extension.is_object_owned_by_host(existing, host, self.sync_id):
            owner = self.extension.get_host_from_object(existing)
            raise BadRequestError(f"Resource owned by other owner: {owner} vs {host}. Backing off.")

        if not is_local_deployable(instance):
            log.debug("Deployable is not (no longer) local, ready to delete object")
            self._deregister_quietly(host, deployable, source)
            status = instance.data.get("status")
            if not isinstance(status, dict):
                status = {}
                instance.data["status"] = status
            status.pop("resourceStatus", None)
            status["message"] = ""
            status["reason"] = ""
            return

        try:
            self.extension.set_host_to_object(template, host, self.sync_id)
        except Exception as err:
            log.error("Failed to set host to object with error: %s", err)

        annotations = template.annotations
        annotations[ANNOTATION_HOSTING_DEPLOYABLE] = f"{instance.namespace}/{instance.name}"
        annotations[ANNOTATION_SYNC_SOURCE] = source
        template.annotations = annotations

        if self.sync_id is not None:
            overrides = prepare_overrides(self.sync_id, instance)
            template = override_template(template, overrides)

        if existing is not None and existing.data == template.data:
            log.debug("Skipping, template in registry is the same")
            return

        resmap.template_map[key] = TemplateUnit.from_object(template, source)
        self.kube_resources[template.group_version_kind] = resmap
        log.debug("Registered template %s for source: %s", key, source)

    def _deregister_quietly(self, host: NamespacedName, deployable: NamespacedName, source: str) -> None:
        try:
            self.deregister_template(host, deployable, source)
        except Exception as err:
            log.error("Failed to deregister template with error: %s", err)

    def generate_resource_map_key(self, host: NamespacedName, deployable: NamespacedName) -> str:
        return f"{host}/{deployable}"


def create_synchronizer(
    local_client: ClusterClient,
    remote_client: Any,
    sync_id: NamespacedName | None,
    interval: float,
    extension: Extension | None,
) -> KubeSynchronizer:
    """Build a synchronizer for the cluster and discover its resources."""
    remote = remote_client if remote_client is not None else local_client
    default_extension.local_client = local_client
    default_extension.remote_client = remote
    sync = KubeSynchronizer(
        local_client,
        remote_client=remote,
        sync_id=sync_id,
        interval=interval,
        extension=extension,
    )
    sync.discover()
    return sync


def add(manager: Any, remote_client: Any, sync_id: NamespacedName | None, interval: float) -> KubeSynchronizer:
    """Create the default synchronizer on ``manager.client`` and add it to the manager."""
    global _default_synchronizer
    _default_synchronizer = create_synchronizer(manager.client, remote_client, sync_id, interval, default_extension)
    manager.add(_default_synchronizer)
    return _default_synchronizer


def get_default_synchronizer() -> KubeSynchronizer | None:
    return _default_synchronizer