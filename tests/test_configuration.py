"""
Tests for configuration loading and overrides.
"""

import pytest
from omegaconf.errors import ConfigKeyError

from pdf_raster_backend.configuration import env_overrides, make_runtime_config


class TestDefaults:
    def test_packaged_defaults(self):
        defaults = make_runtime_config(environ={})
        assert defaults["image_format"] == "jpeg"
        assert defaults["scale"] == 1.5
        assert defaults["compression"]["resize"]["max_width"] == 1200
        assert defaults["compression"]["resize"]["max_height"] == 1600
        assert defaults["compression"]["jpeg"]["quality"] == 75
        assert defaults["compression"]["png"]["compression_level"] == 7


class TestOverrides:
    def test_environment_overrides_are_parsed(self):
        overrides = env_overrides(
            {
                "IMAGE_FORMAT": "PNG",
                "RENDER_SCALE": "2.0",
                "MAX_WORKERS": "4",
                "CLEANUP_ON_STARTUP": "no",
                "UNRELATED": "ignored",
            }
        )
        assert overrides == {
            "image_format": "PNG",
            "scale": 2.0,
            "max_workers": 4,
            "cleanup_on_startup": False,
        }

    def test_invalid_numeric_environment_value(self):
        with pytest.raises(ValueError, match="RENDER_SCALE"):
            env_overrides({"RENDER_SCALE": "large"})

    def test_explicit_overrides_win_over_environment(self):
        config = make_runtime_config({"image_format": "webp"}, environ={"IMAGE_FORMAT": "png"})
        assert config.image_format == "webp"

    def test_format_is_normalized(self):
        config = make_runtime_config(environ={"IMAGE_FORMAT": "PNG"})
        assert config.image_format == "png"

    def test_nested_override_keeps_siblings(self):
        config = make_runtime_config({"compression": {"jpeg": {"quality": 60}}}, environ={})
        assert config.compression.jpeg.quality == 60
        assert config.compression.jpeg.progressive is True

    def test_unknown_key_is_rejected(self):
        with pytest.raises(ConfigKeyError):
            make_runtime_config({"no_such_option": 1}, environ={})

    @pytest.mark.parametrize(
        "overrides",
        [{"image_format": "gif"}, {"scale": 0}, {"max_workers": 0}],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            make_runtime_config(overrides, environ={})
