"""
Tests for capability path parsing.
"""
import pytest

from dcwatch.exceptions import MalformedPath
from dcwatch.path import parse


class TestParseValidPaths:
    """Paths with 3-5 non-empty segments."""

    def test_profile_only_path(self):
        spec = parse("/gotapi/deviceOrientation")
        assert spec.api == "gotapi"
        assert spec.profile == "deviceOrientation"
        assert spec.interface is None
        assert spec.attribute is None
        assert spec.sub_path is None

    def test_attribute_path(self):
        spec = parse("/gotapi/deviceOrientation/onDeviceOrientation")
        assert spec.profile == "deviceOrientation"
        assert spec.interface is None
        assert spec.attribute == "onDeviceOrientation"
        assert spec.sub_path == "/onDeviceOrientation"

    def test_interface_path(self):
        spec = parse("/gotapi/mediaPlayer/media/play")
        assert spec.profile == "mediaPlayer"
        assert spec.interface == "media"
        assert spec.attribute == "play"
        assert spec.sub_path == "/media/play"

    @pytest.mark.parametrize("path", [
        "/gotapi/battery",
        "/gotapi/battery/level",
        "/gotapi/mediaPlayer/media/play",
    ])
    def test_path_round_trips(self, path):
        assert parse(path).path == path
        assert str(parse(path)) == path

    def test_parse_is_deterministic(self):
        assert parse("/gotapi/battery/level") == parse("/gotapi/battery/level")

    def test_spec_is_immutable(self):
        spec = parse("/gotapi/battery/level")
        with pytest.raises(Exception):
            spec.profile = "other"


class TestParseMalformedPaths:
    """Paths that must be rejected."""

    @pytest.mark.parametrize("path", [
        "gotapi/battery/level",      # no leading slash
        "/bad",                      # 2 segments
        "/gotapi/a/b/c/d",           # 6 segments
        "/gotapi//level",            # empty segment
        "/gotapi/battery/",          # trailing slash
        "",
    ])
    def test_malformed(self, path):
        with pytest.raises(MalformedPath):
            parse(path)

    def test_malformed_is_value_error(self):
        with pytest.raises(ValueError):
            parse("/bad")

    def test_error_carries_path(self):
        with pytest.raises(MalformedPath) as exc_info:
            parse("/bad")
        assert exc_info.value.path == "/bad"
        assert "segments" in exc_info.value.reason
