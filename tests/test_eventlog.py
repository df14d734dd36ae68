from appsubsync.eventlog import (
    COMPONENT,
    EVENT_TYPE_NORMAL,
    EVENT_TYPE_WARNING,
    EventRecorder,
    get_fn_name,
)
from appsubsync.meta import KubeObject


def config_map():
    return KubeObject({"kind": "ConfigMap", "metadata": {"name": "test", "namespace": "default"}})


def test_get_fn_name_returns_caller():
    def some_caller():
        return get_fn_name()

    assert some_caller() == "some_caller"


def test_record_normal_event():
    recorder = EventRecorder()
    event = recorder.record_event(config_map(), "testreason", "testmsg", None)
    assert event.type == EVENT_TYPE_NORMAL
    assert event.reason == "testreason"
    assert event.message == "testmsg"
    assert (event.kind, event.namespace, event.name) == ("ConfigMap", "default", "test")


def test_record_warning_event_on_error():
    recorder = EventRecorder()
    event = recorder.record_event(config_map(), "testreason", "testmsg", RuntimeError("testeventerr"))
    assert event.type == EVENT_TYPE_WARNING
    assert EVENT_TYPE_WARNING != EVENT_TYPE_NORMAL


def test_events_kept_in_order_and_sent_to_sink():
    received = []
    recorder = EventRecorder(sink=received.append)
    first = recorder.record_event(config_map(), "r1", "m1", None)
    second = recorder.record_event(config_map(), "r2", "m2", ValueError("x"))
    assert recorder.events == [first, second]
    assert received == [first, second]


def test_default_component():
    event = EventRecorder().record_event(config_map(), "r", "m", None)
    assert event.component == COMPONENT == "subscription"


def test_custom_component():
    event = EventRecorder(component="sync").record_event(config_map(), "r", "m", None)
    assert event.component == "sync"