from appsubsync.client import APIResource, APIResourceList, ResourceMap, TemplateUnit
from appsubsync.meta import GroupVersionResource, KubeObject


def _configmap():
    obj = KubeObject({"apiVersion": "v1", "kind": "ConfigMap", "data": {"k": "v"}})
    obj.name = "workload"
    obj.namespace = "default"
    obj.annotations = {"app.ibm.com/sync-source": "synctest"}
    return obj


def test_from_object_copies_content():
    obj = _configmap()
    unit = TemplateUnit.from_object(obj, "synctest")
    obj.data["data"]["k"] = "changed"
    assert unit.data["data"]["k"] == "v"
    assert unit.source == "synctest"
    assert unit.resource_updated is False
    assert unit.status_updated is False


def test_unit_exposes_object_metadata():
    unit = TemplateUnit.from_object(_configmap())
    assert unit.name == "workload"
    assert unit.namespace == "default"
    assert unit.annotations == {"app.ibm.com/sync-source": "synctest"}


def test_template_shares_data():
    unit = TemplateUnit.from_object(_configmap())
    unit.template.name = "renamed"
    assert unit.name == "renamed"
    assert unit.template.data is unit.data


def test_resource_maps_do_not_share_templates():
    first, second = ResourceMap(), ResourceMap()
    first.template_map["key"] = TemplateUnit()
    assert second.template_map == {}
    assert first.group_version_resource.empty()


def test_resource_map_keeps_given_resource():
    gvr = GroupVersionResource(version="v1", resource="configmaps")
    resmap = ResourceMap(group_version_resource=gvr, namespaced=True)
    assert resmap.group_version_resource == gvr
    assert resmap.namespaced is True
    assert resmap.server_updated is False


def test_supports_all_verbs():
    res = APIResource("configmaps", "ConfigMap", True, ["create", "list", "watch"])
    assert res.supports_all_verbs(["create", "list"])
    assert not res.supports_all_verbs(["create", "delete"])
    assert res.verbs == ("create", "list", "watch")


def test_resource_list_holds_resources():
    res = APIResource("pods", "Pod", True)
    resource_list = APIResourceList("v1", [res])
    assert resource_list.resources == [res]
    assert APIResourceList("v1").resources == []