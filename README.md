# appsubsync

A library for keeping a cluster's resources in line with the templates that
subscriptions deliver. It holds a registry of resource templates keyed by
hosting subscription and deployable, applies them through a cluster client you
supply, harvests existing owned objects back into the registry, and records
package status on the hosting subscription or deployable.

## Modules

- `appsubsync.meta`: `NamespacedName`, `GroupKind`, `GroupVersionKind`,
  `GroupVersionResource`, `KubeObject` (an API object held as nested
  dictionaries, with `name`, `namespace`, `labels`, `annotations` and other
  metadata properties), the errors `NotFoundError` and `BadRequestError`, and
  helpers that read hosting annotations: `get_host_subscription_from_object`,
  `get_host_deployable_from_object`, `get_cluster_from_resource_object`,
  `get_source_from_object`, `is_local_deployable`,
  `is_resource_owned_by_cluster`, `namespaced_name_format`,
  `parse_group_version`.
- `appsubsync.labels`: `LabelSelector` with match labels and
  `LabelSelectorRequirement` expressions (`In`, `NotIn`, `Exists`,
  `DoesNotExist`); `convert_labels` compiles one into a `Selector` or raises
  `InvalidSelectorError`. `label_checker`, `labels_checker`,
  `keywords_checker` and `match_label_for_sub_and_dpl` match label sets.
- `appsubsync.timewindow`: `TimeWindow` and `HourRange` (kitchen times such as
  `10:30AM`); `next_start_point` returns a `timedelta` to wait until the next
  slot, for `active` and blocking windows, in the window's time zone.
  `merge_hour_ranges`, `reverse_range`, `parse_kitchen_time` and
  `duration_to_next_runable_weekday` are available on their own.
- `appsubsync.version`: `Version`, `parse_tolerant`, `parse_range`;
  `semver_check` tests a version against a range such as
  `">1.2.2 <1.2.5 !=1.2.4"` or `"3.4.x"`; `generate_version_set` picks the
  newest matching deployable in each group, and
  `is_deployable_in_version_set` tells whether a deployable was picked.
- `appsubsync.overrides`: `prepare_overrides`, `override_template`,
  `override_resource_by_subscription` and `filter_package_out`.
- `appsubsync.status`: the `StatusClient` protocol (`get(key)`,
  `update_status(obj)`), `set_in_cluster_package_status`,
  `update_subscription_status`, `validate_packages_in_subscription_status`,
  `update_deployable_status` and `subscription_update_predicate`.
- `appsubsync.secrets`: `clean_up_object`, `package_secret`, `apply_filters`.
- `appsubsync.eventlog`: `EventRecorder.record_event` keeps `Event` records in
  memory, logs them and passes each to an optional sink; `get_fn_name`.
- `appsubsync.client`: the `ClusterClient` and `ResourceClient` protocols,
  `APIResource`, `APIResourceList`, `TemplateUnit` and `ResourceMap`.
- `appsubsync.extension`: the `Extension` protocol and
  `SubscriptionExtension`, which decides ownership and where host status goes.
- `appsubsync.discovery`: `discover_resources`, `validate_api_resource_list`,
  `get_validated_gvk`.
- `appsubsync.crd`: `check_and_install_crd` creates a custom resource
  definition from a YAML file, or updates the spec of an existing one.
- `appsubsync.synchronizer`: `KubeSynchronizer`, built with
  `create_synchronizer`, with `register_template`, `deregister_template`,
  `apply_template`, `check_server_objects`, `house_keeping`, `discover` and
  `start(stop_event)`; `add` and `get_default_synchronizer` manage a default
  instance.
- `appsubsync.validator`: `Validator`, `create_validator`, `apply_validator`
  and `cleanup_by_host` prune templates no longer vouched for.
- `appsubsync.registry`: `add_to_manager` runs every function in
  `add_to_manager_funcs` against a manager.

## Example

```python
from datetime import datetime, timezone

from appsubsync.timewindow import HourRange, TimeWindow, next_start_point
from appsubsync.version import semver_check

window = TimeWindow(
    window_type="active",
    hours=[HourRange("10:30AM", "11:30AM"), HourRange("12:30PM", "8:30PM")],
    weekdays=["Sunday", "monday", "friday"],
)
wait = next_start_point(window, datetime(2019, 11, 3, 9, 40, tzinfo=timezone.utc))
print(wait)  # 0:50:00

print(semver_check(">=1.2.1", "v1.2.3"))  # True
```

## Connecting to a cluster

The synchronizer works through objects you provide:

- a cluster client with `resource(gvr, namespace="")` returning a resource
  client (`get`, `list`, `create`, `update`, `patch`, `delete`) and
  `server_preferred_resources()` returning `APIResourceList` items; if it also
  has `watch(gvr, callback)`, the synchronizer uses it to learn of changes;
- status clients with `get(key)` and `update_status(obj)`, used by the default
  `SubscriptionExtension` (by default the same objects as the cluster clients);
- for `add` and `add_to_manager`, a manager with a `client` attribute and an
  `add(runnable)` method.

## What it does not do

The package contains no client that talks to a real API server, no manager or
controller loop of its own, and no command-line program. Events recorded by
`EventRecorder` stay in memory unless you give it a sink. You supply the
cluster, status and manager objects described above.

## Tests

```
pip install -e .[test]
pytest
```