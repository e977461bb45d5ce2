import pytest

from bumpkit.exceptions import ValidationError
from bumpkit.version import (
    DEFAULT_VERSION,
    Version,
    format_suggestion,
    is_valid_prerelease,
    parse_suggestion,
    propose_version,
)


def test_parse_and_render():
    assert str(Version.parse("v1.2.3")) == "1.2.3"
    assert Version.parse("1.2.3-rc1") == Version(1, 2, 3, "rc1")
    assert Version.parse("1.2.3+build.5") == Version(1, 2, 3)
    assert Version(2, 0, 0, "alpha1").tag == "v2.0.0-alpha1"
    assert str(DEFAULT_VERSION) == "0.1.0"


@pytest.mark.parametrize("text", ["1.2", "01.2.3", "1.2.3.4", "v", "latest"])
def test_parse_rejects_non_semver(text):
    with pytest.raises(ValueError):
        Version.parse(text)


def test_semver_ordering():
    ordered = [
        "1.0.0-alpha1",
        "1.0.0-alpha2",
        "1.0.0-beta1",
        "1.0.0-rc1",
        "1.0.0",
        "1.0.1",
        "1.1.0",
        "2.0.0",
    ]
    versions = [Version.parse(v) for v in ordered]
    assert sorted(reversed(versions)) == versions


def test_prerelease_pattern():
    assert is_valid_prerelease("alpha1")
    assert is_valid_prerelease("rc12")
    assert not is_valid_prerelease("gamma1")
    assert not is_valid_prerelease("beta")


def test_compact_suggestion():
    current = Version.parse("0.1.0")
    kind, pre = parse_suggestion("minor:beta1", current)
    assert (kind, pre) == ("minor", "beta1")
    assert str(propose_version(current, kind, pre)) == "0.2.0-beta1"


def test_full_version_suggestion():
    current = Version.parse("1.4.2")
    kind, pre = parse_suggestion("2.0.0-alpha1", current)
    assert (kind, pre) == ("major", "alpha1")
    assert str(propose_version(current, kind, pre)) == "2.0.0-alpha1"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("patch:", ("patch", "")),
        (":rc1", ("", "rc1")),
        ("rc2", ("", "rc2")),
        ("stable", ("", "")),
        ("1.5.0", ("minor", "")),
        ("1.4.3-rc1", ("patch", "rc1")),
    ],
)
def test_suggestion_shapes(text, expected):
    assert parse_suggestion(text, Version.parse("1.4.2")) == expected


@pytest.mark.parametrize(
    "text",
    ["", "huge:", "minor:gamma1", "a:b:c", "1.0.0", "2.0.0-preview", "please bump"],
)
def test_invalid_suggestions(text):
    with pytest.raises(ValidationError):
        parse_suggestion(text, Version.parse("1.4.2"))


@pytest.mark.parametrize(
    "kind, pre",
    [("major", ""), ("minor", "beta1"), ("patch", ""), ("", "rc1"), ("", "")],
)
def test_format_suggestion_is_read_back(kind, pre):
    current = Version.parse("1.0.0")
    assert parse_suggestion(format_suggestion(kind, pre), current) == (kind, pre)


@pytest.mark.parametrize(
    "current, kind, pre, expected",
    [
        ("1.2.3", "major", "", "2.0.0"),
        ("1.2.3", "minor", "", "1.3.0"),
        ("1.2.3", "patch", "", "1.2.4"),
        ("1.2.3", "none", "", "1.2.3"),
        ("1.2.3", "", "alpha1", "1.2.4-alpha1"),
        ("1.3.0-beta1", "", "beta2", "1.3.0-beta2"),
        ("1.3.0-rc1", "", "", "1.3.0"),
        ("1.0.0-alpha9", "", "alpha10", "1.0.0-alpha10"),
        ("1.0.0-beta10", "", "rc1", "1.0.0-rc1"),
        ("1.0.0-rc9", "", "rc10", "1.0.0-rc10"),
    ],
)
def test_propose_version(current, kind, pre, expected):
    assert str(propose_version(Version.parse(current), kind, pre)) == expected


def test_proposals_never_go_backwards():
    with pytest.raises(ValidationError):
        propose_version(Version.parse("1.3.0-beta2"), "", "alpha1")
    with pytest.raises(ValidationError):
        propose_version(Version.parse("1.0.0-alpha10"), "", "alpha9")


def test_tenth_prerelease_from_suggestion():
    current = Version.parse("1.0.0-alpha9")
    kind, pre = parse_suggestion("alpha10", current)
    assert str(propose_version(current, kind, pre)) == "1.0.0-alpha10"


def test_unknown_bump_kind():
    with pytest.raises(ValidationError):
        propose_version(Version.parse("1.0.0"), "huge", "")
