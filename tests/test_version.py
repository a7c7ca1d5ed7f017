import pytest

from wolfictl.version import InvalidVersionError, Version, sort_versions


def test_parse_segments_and_original():
    v = Version("v1.2.3")
    assert v.segments == (1, 2, 3)
    assert v.original == "v1.2.3"
    assert v.prerelease == ""


def test_short_version_padded():
    assert Version("v1").segments == (1, 0, 0)


def test_prerelease_without_dash():
    v = Version("v1.2.4ab1")
    assert v.prerelease == "ab1"
    assert v.segments == (1, 2, 4)


def test_metadata_ignored_in_compare():
    assert Version("v1.2").compare(Version("v1.2+1")) == 0
    assert Version("v1.2+1").metadata == "1"


def test_prerelease_is_older():
    assert Version("v1.2.4-1") < Version("v1.2.4")


def test_extra_segment_is_newer():
    assert Version("v1.2.3") < Version("v1.2.3.1")


def test_sort_versions_latest_last():
    tags = ["v1.2.4", "v1.2.4-1", "v1.2.3.1", "v1.2.3"]
    ordered = sort_versions(Version(t) for t in tags)
    assert ordered[-1].original == "v1.2.4"
    assert all(a <= b for a, b in zip(ordered, ordered[1:]))


def test_invalid_version():
    with pytest.raises(InvalidVersionError):
        Version("not-a-version")