"""
Tests for version parsing and comparison (toolchain_probe/versions.py).
"""

import pytest

from toolchain_probe.versions import (
    ParsedVersion,
    compare_versions,
    is_newer,
    parse_version,
    select_latest,
)


class TestParseVersion:
    """Tests for parse_version."""

    def test_plain_triple(self):
        assert parse_version("1.2.3") == ParsedVersion(1, 2, 3, None)

    def test_leading_v_and_whitespace(self):
        assert parse_version("  v0.12.1\n") == ParsedVersion(0, 12, 1, None)
        assert parse_version("V2.0.0") == ParsedVersion(2, 0, 0, None)

    @pytest.mark.parametrize("raw,prerelease", [
        ("1.0.0rc1", "rc1"),
        ("1.0.0a2", "a2"),
        ("1.0.0b3", "b3"),
        ("1.0.0beta", "beta"),
        ("1.0.0-rc1", "rc1"),
    ])
    def test_prerelease_tags(self, raw, prerelease):
        parsed = parse_version(raw)
        assert parsed is not None
        assert parsed.release == (1, 0, 0)
        assert parsed.prerelease == prerelease
        assert parsed.is_prerelease

    @pytest.mark.parametrize("raw", [
        "", "1.2", "1.2.3.4", "vv1.2.3", "1.2.x", "RapidKit 1.2.3", "1.2.3 extra", "abc", None,
    ])
    def test_rejects_malformed(self, raw):
        assert parse_version(raw) is None


class TestIsNewer:
    """Tests for is_newer(current, candidate)."""

    def test_numeric_components(self):
        assert is_newer("1.2.3", "1.2.4")
        assert is_newer("1.2.3", "1.3.0")
        assert is_newer("1.9.9", "2.0.0")
        assert not is_newer("1.2.4", "1.2.3")

    def test_numeric_not_lexicographic(self):
        assert is_newer("0.9.0", "0.10.0")
        assert not is_newer("0.10.0", "0.9.0")

    def test_equal_is_not_newer(self):
        assert not is_newer("1.2.3", "1.2.3")
        assert not is_newer("v1.2.3", "1.2.3")

    def test_stable_beats_prerelease_of_same_triple(self):
        assert is_newer("1.0.0rc1", "1.0.0")

    def test_prerelease_never_beats_stable_of_same_triple(self):
        assert not is_newer("1.0.0", "1.0.0rc1")
        assert not is_newer("1.0.0", "1.0.0rc9")

    def test_prereleases_of_same_triple(self):
        assert is_newer("1.0.0rc1", "1.0.0rc2")
        assert is_newer("1.0.0a1", "1.0.0b1")
        assert not is_newer("1.0.0rc2", "1.0.0rc1")

    def test_unorderable_prereleases_are_not_newer(self):
        assert not is_newer("1.0.0foo1", "1.0.0bar2")

    def test_prerelease_of_higher_triple_beats_stable(self):
        assert is_newer("1.0.0", "1.0.1rc1")

    @pytest.mark.parametrize("current,candidate", [
        ("garbage", "1.0.0"),
        ("1.0.0", "garbage"),
        ("", "1.0.0"),
        (None, None),
    ])
    def test_unparsable_is_false(self, current, candidate):
        assert is_newer(current, candidate) is False


class TestCompareVersions:
    """Tests for compare_versions helper."""

    def test_ordering(self):
        assert compare_versions("1.0.0", "1.0.1") == -1
        assert compare_versions("1.0.1", "1.0.0") == 1
        assert compare_versions("1.0.0", "v1.0.0") == 0

    def test_unknown(self):
        assert compare_versions("1.0", "1.0.0") is None
        assert compare_versions("1.0.0foo1", "1.0.0bar1") is None


class TestSelectLatest:
    """Tests for select_latest helper."""

    def test_splits_stable_and_prerelease(self):
        stable, pre = select_latest(["0.9.0", "0.10.0", "0.11.0rc1", "0.10.1b2", "junk"])
        assert stable == "0.10.0"
        assert pre == "0.11.0rc1"

    def test_empty(self):
        assert select_latest([]) == (None, None)
