import json

import pytest

from appsubsync.meta import (
    ANNOTATION_HOSTING_DEPLOYABLE,
    ANNOTATION_HOSTING_SUBSCRIPTION,
    ANNOTATION_LOCAL,
    ANNOTATION_MANAGED_CLUSTER,
    ANNOTATION_SUBSCRIPTION,
    ANNOTATION_SYNC_SOURCE,
    GroupKind,
    GroupVersionKind,
    GroupVersionResource,
    KubeObject,
    NamespacedName,
    get_cluster_from_resource_object,
    get_host_deployable_from_object,
    get_host_subscription_from_object,
    get_source_from_object,
    is_local_deployable,
    is_resource_owned_by_cluster,
    namespaced_name_format,
    parse_group_version,
)

HOST_DPL = NamespacedName(name="test-dpl", namespace="test-dpl-ns")
HOST_SUB = NamespacedName(name="test-sub", namespace="test-sub-ns")
HOST_CLUSTER = NamespacedName(name="test-cluster", namespace="test-cluster-ns")


@pytest.fixture
def cfgmap():
    return KubeObject(
        {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {
                "name": "test-configmap",
                "namespace": "test-configmap-ns",
                "annotations": {
                    ANNOTATION_HOSTING_DEPLOYABLE: str(HOST_DPL),
                    ANNOTATION_SUBSCRIPTION: str(HOST_SUB),
                    ANNOTATION_HOSTING_SUBSCRIPTION: str(HOST_SUB),
                    ANNOTATION_MANAGED_CLUSTER: str(HOST_CLUSTER),
                },
            },
        }
    )


def test_namespaced_name_format_round_trip():
    nsn = NamespacedName(name="tname", namespace="tnamespace")
    assert namespaced_name_format(str(nsn)) == nsn


def test_namespaced_name_format_incorrect():
    assert namespaced_name_format("incorrect format") == NamespacedName()


def test_namespaced_name_format_empty():
    assert namespaced_name_format("") == NamespacedName()


def test_namespaced_name_string():
    assert str(NamespacedName(name="tname", namespace="tnamespace")) == "tnamespace/tname"


def test_annotations(cfgmap):
    assert get_cluster_from_resource_object(cfgmap) == HOST_CLUSTER
    assert get_host_deployable_from_object(cfgmap) == HOST_DPL
    assert get_host_subscription_from_object(cfgmap) == HOST_SUB


def test_lookups_on_none_and_missing():
    empty = KubeObject({"metadata": {"name": "x"}})
    assert get_cluster_from_resource_object(None) is None
    assert get_host_deployable_from_object(empty) is None
    assert get_host_subscription_from_object(empty) is None
    assert get_source_from_object(None) == ""
    assert get_source_from_object(empty) == ""


def test_malformed_hosting_annotation():
    obj = KubeObject({"metadata": {"annotations": {ANNOTATION_HOSTING_DEPLOYABLE: "a/b/c"}}})
    assert get_host_deployable_from_object(obj) is None


def test_source_from_object():
    obj = KubeObject({"metadata": {"annotations": {ANNOTATION_SYNC_SOURCE: "synctest"}}})
    assert get_source_from_object(obj) == "synctest"


def test_is_resource_owned_by_cluster(cfgmap):
    assert is_resource_owned_by_cluster(cfgmap, HOST_CLUSTER) is True
    assert is_resource_owned_by_cluster(cfgmap, HOST_SUB) is False
    assert is_resource_owned_by_cluster(None, HOST_CLUSTER) is False


@pytest.mark.parametrize(
    "annotations, expected",
    [
        ({ANNOTATION_LOCAL: "true"}, True),
        ({ANNOTATION_LOCAL: "false"}, False),
        ({}, False),
        (None, False),
    ],
)
def test_is_local_deployable(annotations, expected):
    obj = KubeObject({"metadata": {"name": "d"}})
    obj.annotations = annotations
    assert is_local_deployable(obj) is expected


def test_is_local_deployable_none():
    assert is_local_deployable(None) is False


@pytest.mark.parametrize(
    "text, expected",
    [("", ("", "")), ("/", ("", "")), ("v1", ("", "v1")), ("apps/v1", ("apps", "v1"))],
)
def test_parse_group_version(text, expected):
    assert parse_group_version(text) == expected


def test_parse_group_version_error():
    with pytest.raises(ValueError):
        parse_group_version("a/b/c")


def test_group_kind_and_empty():
    gvk = GroupVersionKind(group="apps", version="v1", kind="Deployment")
    assert gvk.group_kind() == GroupKind(group="apps", kind="Deployment")
    assert GroupVersionResource().empty() is True
    assert GroupVersionResource(version="v1", resource="services").empty() is False


def test_group_version_kind_property():
    obj = KubeObject()
    obj.group_version_kind = GroupVersionKind(group="apps", version="v1", kind="Deployment")
    assert obj.api_version == "apps/v1"
    assert obj.group_version_kind == GroupVersionKind(group="apps", version="v1", kind="Deployment")
    obj.group_version_kind = GroupVersionKind(version="v1", kind="ConfigMap")
    assert obj.api_version == "v1"
    assert obj.kind == "ConfigMap"


def test_deep_copy_is_independent(cfgmap):
    dup = cfgmap.deep_copy()
    assert dup == cfgmap
    dup.annotations = {"k": "v"}
    assert cfgmap.annotations != dup.annotations
    assert ANNOTATION_MANAGED_CLUSTER in cfgmap.annotations


def test_to_json_round_trip(cfgmap):
    assert json.loads(cfgmap.to_json()) == cfgmap.data


def test_metadata_setters():
    obj = KubeObject()
    obj.name = "n"
    obj.labels = {}
    assert obj.data["metadata"] == {"name": "n", "labels": {}}
    obj.name = ""
    obj.labels = None
    assert obj.data["metadata"] == {}
    obj.finalizers = ["f"]
    assert obj.finalizers == ["f"]