import pytest

from appsubsync.meta import ANNOTATION_DEPLOYABLE_VERSION, KubeObject
from appsubsync.version import (
    Version,
    VersionRep,
    generate_version_set,
    is_deployable_in_version_set,
    parse_range,
    parse_tolerant,
    semver_check,
)


@pytest.mark.parametrize(
    "vsub, vdpl, result",
    [
        (">=1.2.1", "v1.2.3", True),
        (">=1.0.0", "1.2.3 ", True),
        (">=1.x", "1.0.0", True),
        (">=1.x", "0.3.4", False),
        (">=1.x", "2.0.0", True),
        ("3.4.x", "3.4", True),
        ("<=1.3.1", "1.3", True),
        (">=v2.1.1", "1.1", False),
        (">=2.1.1", "v1.1", False),
        (">=1.1.0-a", "1.1.0", True),
        (">=1.1.10", "1.1.10", True),
        (">1.2.2 <1.2.5 !=1.2.4", "1.2.2", False),
        (">1.2.2 <1.2.5 !=1.2.4", "1.2.3", True),
    ],
)
def test_semver_check(vsub, vdpl, result):
    assert semver_check(vsub, vdpl) is result


def test_semver_check_empty_inputs():
    assert semver_check("", "garbage") is True
    assert semver_check("garbage", "") is True
    assert semver_check(">=1.0.0", "not-a-version") is False


def test_parse_tolerant_short_and_prefixed():
    assert parse_tolerant("v1.1") == Version(1, 1, 0)
    assert parse_tolerant(" 3.4 ") == Version(3, 4, 0)
    assert str(parse_tolerant("1.2.3-rc.1+build.5")) == "1.2.3-rc.1+build.5"


@pytest.mark.parametrize("text", ["", "1.2-rc", "01.2.3", "1.2.3-", "1.2.3+", "1.2.3-01", "a.b.c"])
def test_parse_tolerant_rejects(text):
    with pytest.raises(ValueError):
        parse_tolerant(text)


def test_version_ordering():
    assert parse_tolerant("1.0.0-alpha") < parse_tolerant("1.0.0")
    assert parse_tolerant("1.0.0-alpha.1") < parse_tolerant("1.0.0-alpha.beta")
    assert parse_tolerant("1.0.0-alpha") < parse_tolerant("1.0.0-alpha.1")
    assert parse_tolerant("1.2.3+a") == parse_tolerant("1.2.3+b")
    assert sorted([parse_tolerant("2.0"), parse_tolerant("1.10"), parse_tolerant("1.9")]) == [
        Version(1, 9, 0),
        Version(1, 10, 0),
        Version(2, 0, 0),
    ]


def test_parse_range_or_and_wildcards():
    either = parse_range("1.2.3 || >=2.0.0")
    assert either(Version(1, 2, 3)) is True
    assert either(Version(2, 5, 0)) is True
    assert either(Version(1, 5, 0)) is False

    not_minor = parse_range("!=1.2.x")
    assert not_minor(Version(1, 2, 7)) is False
    assert not_minor(Version(1, 3, 0)) is True

    spaced = parse_range(">= 1.2.0")
    assert spaced(Version(1, 2, 0)) is True


@pytest.mark.parametrize("text", ["", "|| 1.0.0", ">=1.0.0 ||", ">=v1.0.0", "~1.0.0", ">=1.0"])
def test_parse_range_rejects(text):
    with pytest.raises(ValueError):
        parse_range(text)


def fake_deployable(generate_name, name, version):
    return KubeObject(
        {
            "metadata": {
                "generateName": generate_name,
                "name": name,
                "annotations": {ANNOTATION_DEPLOYABLE_VERSION: version},
            }
        }
    )


GROUP_A = "A"
DPL1 = fake_deployable(GROUP_A, "dpl1", "1.0.0")
DPL2 = fake_deployable(GROUP_A, "dpl2", "2.0.0")
DPL3 = fake_deployable(GROUP_A, "dpl3", "1.8.0")
DPL4 = fake_deployable(GROUP_A, "dpl4", "")
DPL5 = fake_deployable(GROUP_A, "dpl5", "")


@pytest.mark.parametrize(
    "vsub, deployables, result",
    [
        ("<2.1.0", [DPL1, DPL2, DPL3], "/dpl2"),
        ("", [DPL1, DPL2, DPL3], "/dpl2"),
        ("<2.1.0", [DPL4, DPL5], "/dpl4"),
        ("", [DPL4, DPL5], "/dpl4"),
    ],
)
def test_generate_version_set(vsub, deployables, result):
    got = generate_version_set(deployables, vsub)
    assert got[GROUP_A].dpl_key == result


def test_generate_version_set_without_generate_name():
    deployables = [
        fake_deployable("", "dpl1b", "1.0.0"),
        fake_deployable("", "dpl2b", "2.0.0"),
        fake_deployable("", "dpl3b", "1.6.0"),
    ]
    got = generate_version_set(deployables, "")
    assert got["dpl1b"].dpl_key == "/dpl1b"
    assert got["dpl1b"].version_range == ">1.0.0"
    assert set(got) == {"dpl1b", "dpl2b", "dpl3b"}


def test_generate_version_set_filters_by_range():
    got = generate_version_set([DPL2], "<2.0.0")
    assert got == {}


def test_is_deployable_in_version_set():
    version_map = generate_version_set([DPL1, DPL2, DPL3], "<2.1.0")
    assert is_deployable_in_version_set(version_map, DPL2) is True
    assert is_deployable_in_version_set(version_map, DPL1) is False
    other = fake_deployable("B", "dplx", "1.0.0")
    assert is_deployable_in_version_set(version_map, other) is False
    assert is_deployable_in_version_set({"A": VersionRep("/dpl1", ">1.0.0")}, DPL1) is True