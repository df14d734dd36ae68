"""Finding which resource kinds the cluster serves and can be synchronized."""

from __future__ import annotations

import logging
from typing import Callable, MutableMapping

from .client import APIResourceList, ClusterClient, ResourceMap
from .extension import DEPLOYABLE_GROUP_KIND, Extension
from .meta import GroupKind, GroupVersionKind, GroupVersionResource, parse_group_version

log = logging.getLogger(__name__)

REQUIRED_VERBS = ("create", "update", "delete", "list", "watch")
CRD_KIND = "CustomResourceDefinition"
CRD_RESOURCE_NAME = "customresourcedefinitions"

INTERNAL_REPLACED_GVK: dict[GroupVersionKind, GroupVersionKind] = {
    GroupVersionKind(group="extensions", version="v1beta1", kind="Deployment"):
        GroupVersionKind(group="apps", version="v1", kind="Deployment"),
}

INTERNAL_IGNORED_GROUP_KINDS = frozenset({
    GroupKind(group="extensions", kind="ReplicaSet"),
    GroupKind(group="apps", kind="ReplicaSet"),
    GroupKind(group="extensions", kind="Deployment"),
    DEPLOYABLE_GROUP_KIND,
})

KubeResources = MutableMapping[GroupVersionKind, ResourceMap]
WatchFunc = Callable[[GroupVersionResource, GroupVersionKind], None]


def _is_ignored(group_kind: GroupKind, extension: Extension | None) -> bool:
    if group_kind in INTERNAL_IGNORED_GROUP_KINDS:
        return True
    return extension is not None and extension.is_ignored_group_kind(group_kind)


def get_validated_gvk(
    gvk: GroupVersionKind, kube_resources: KubeResources, extension: Extension | None
) -> GroupVersionKind | None:
    """The kind to register a template under, or ``None`` when unsupported."""
    valid = INTERNAL_REPLACED_GVK.get(gvk, gvk)
    group_kind = valid.group_kind()
    log.debug("gk: %s valid: %s", group_kind, valid)
    if _is_ignored(group_kind, extension):
        return None
    if valid not in kube_resources:
        return None
    return valid


def validate_api_resource_list(
    resource_list: APIResourceList,
    kube_resources: KubeResources,
    valid: set[GroupVersionKind],
    extension: Extension | None,
    watch: WatchFunc | None,
) -> None:
    """Register the list's kinds, completing entries that have no resource yet.

    Every kind that is not ignored is added to ``valid``; ``watch`` is called
    once for each kind whose resource is filled in here.
    """
    try:
        group, version = parse_group_version(resource_list.group_version)
    except ValueError as err:
        log.debug("Skipping %s with error: %s", resource_list.group_version, err)
        return

    for res in resource_list.resources:
        gvk = GroupVersionKind(group=group, version=version, kind=res.kind)
        if _is_ignored(gvk.group_kind(), extension):
            log.debug("Skipping ignored resource: %s Categories: %s", gvk, res.categories)
            continue

        valid.add(gvk)
        resmap = kube_resources.get(gvk)
        if resmap is None:
            resmap = ResourceMap()

        if resmap.group_version_resource.empty():
            gvr = GroupVersionResource(group=group, version=version, resource=res.name)
            resmap.group_version_resource = gvr
            resmap.namespaced = res.namespaced
            kube_resources[gvk] = resmap
            if watch is not None:
                watch(gvr, gvk)
            log.debug("Start watching kind: %s, resource: %s objects in it: %d",
                      res.kind, gvr, len(resmap.template_map))


def discover_resources(
    client: ClusterClient,
    kube_resources: KubeResources,
    extension: Extension | None,
    watch: WatchFunc | None,
) -> set[GroupVersionKind]:
    """Refresh the registry from server discovery and drop kinds no longer served."""
    log.info("Discovering cluster resources")
    try:
        resource_lists = client.server_preferred_resources()
    except Exception as err:  # discovery failures leave what could be found
        log.error("Failed to discover server resources. skipping err: %s", err)
        resource_lists = []

    valid: set[GroupVersionKind] = set()
    for resource_list in resource_lists:
        usable = [res for res in resource_list.resources if res.supports_all_verbs(REQUIRED_VERBS)]
        if not usable:
            continue
        filtered = APIResourceList(resource_list.group_version, usable)
        validate_api_resource_list(filtered, kube_resources, valid, extension, watch)

    log.debug("valid resources remain: %s", valid)
    for gvk in [gvk for gvk in kube_resources if gvk not in valid]:
        del kube_resources[gvk]
    return valid