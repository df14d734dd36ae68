import pytest

from appsubsync.labels import (
    EXISTS,
    IN,
    InvalidSelectorError,
    LabelSelector,
    LabelSelectorRequirement,
    convert_labels,
    keywords_checker,
    label_checker,
    labels_checker,
    match_label_for_sub_and_dpl,
)

LABEL_KEY = "package"
LD = "data"
LABEL_KEY_NONE = "p"
VALUES = [LD, "d", "dp"]
VALUES_NONE = ["", "d", "dp"]


@pytest.mark.parametrize(
    "selector, labels, want",
    [
        (None, {"package": "data", "version": "2"}, True),
        (LabelSelector(match_labels={"package": "data"}), {"package": "data"}, True),
        (LabelSelector(match_labels={"package": "data"}), {"package": "data", "version": "2"}, True),
        (LabelSelector(match_labels={"package": "data", "version": "2"}), {"package": "data"}, False),
        (LabelSelector(match_labels={"package": "data", "version": "2"}), {}, False),
        (LabelSelector(match_labels={}), {}, False),
    ],
)
def test_label_filter(selector, labels, want):
    assert match_label_for_sub_and_dpl(selector, labels) is want


CASES = [
    # 1: match labels only
    (LabelSelector(match_labels={LABEL_KEY: "data"}), None, False),
    (LabelSelector(match_labels={LABEL_KEY: "data"}), {LABEL_KEY_NONE: "data"}, False),
    (LabelSelector(match_labels={LABEL_KEY: "data", LABEL_KEY_NONE: "data"}), {LABEL_KEY_NONE: "data"}, False),
    # 2: expressions only
    (LabelSelector(match_expressions=[LabelSelectorRequirement(LABEL_KEY, IN, VALUES)]), None, False),
    (LabelSelector(match_expressions=[LabelSelectorRequirement(LABEL_KEY, IN, VALUES)]), {"pa": "data"}, False),
    (LabelSelector(match_expressions=[LabelSelectorRequirement(LABEL_KEY, IN, VALUES)]), {"package": "data"}, True),
    (
        LabelSelector(
            match_expressions=[
                LabelSelectorRequirement(LABEL_KEY, IN, VALUES),
                LabelSelectorRequirement(LABEL_KEY_NONE, IN, VALUES_NONE),
            ]
        ),
        {"package": "data"},
        False,
    ),
    # 3: neither
    (LabelSelector(), None, True),
    (LabelSelector(), {"pa": "data"}, True),
    (LabelSelector(), {"package": "data"}, True),
    # 4: both
    (
        LabelSelector(match_labels={LABEL_KEY: LD}, match_expressions=[LabelSelectorRequirement(LABEL_KEY, IN, VALUES)]),
        None,
        False,
    ),
    (
        LabelSelector(match_labels={LABEL_KEY: LD}, match_expressions=[LabelSelectorRequirement(LABEL_KEY, IN, VALUES)]),
        {LABEL_KEY: LD, LABEL_KEY_NONE: LD},
        True,
    ),
    (
        LabelSelector(match_labels={LABEL_KEY: LD}, match_expressions=[LabelSelectorRequirement(LABEL_KEY, IN, VALUES)]),
        {LABEL_KEY: LD},
        True,
    ),
]


@pytest.mark.parametrize("selector, labels, want", CASES)
def test_selector(selector, labels, want):
    assert label_checker(selector, labels) is want


def test_convert_none_matches_everything():
    assert convert_labels(None).matches({"any": "thing"}) is True


def test_convert_invalid_operator_raises():
    with pytest.raises(InvalidSelectorError):
        convert_labels(LabelSelector(match_expressions=[LabelSelectorRequirement("k", "Bogus", ["v"])]))


def test_convert_in_without_values_raises():
    with pytest.raises(InvalidSelectorError):
        convert_labels(LabelSelector(match_expressions=[LabelSelectorRequirement("k", IN, [])]))


def test_invalid_selector_rejects_all():
    bad = LabelSelector(match_expressions=[LabelSelectorRequirement("k", EXISTS, ["v"])])
    assert label_checker(bad, {"k": "v"}) is False
    assert labels_checker(bad, {"k": "v"}) is False


def test_keywords_checker():
    selector = LabelSelector(match_labels={"database": "true"})
    assert keywords_checker(selector, ["database", "web"]) is True
    assert keywords_checker(selector, ["web"]) is False
    assert keywords_checker(None, []) is True