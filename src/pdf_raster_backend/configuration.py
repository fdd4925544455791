"""
Configuration loading for the conversion service.

Defaults are read from the packaged ``config/defaults.yaml`` and merged with
environment variables (optionally loaded from a ``.env`` file) and explicit
overrides. The merged configuration is in struct mode, so overriding a key
that does not exist in the defaults is rejected.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

load_dotenv()

CONFIG_PATH = Path(__file__).resolve().parent / "config" / "defaults.yaml"

IMAGE_FORMATS = ("jpeg", "png", "webp")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


# Environment variable -> (config key, parser)
ENV_OVERRIDES: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "PDF_INPUT_DIR": ("input_dir", str),
    "IMAGE_OUTPUT_DIR": ("output_dir", str),
    "IMAGE_FORMAT": ("image_format", str),
    "RENDER_SCALE": ("scale", float),
    "MAX_WORKERS": ("max_workers", int),
    "CLEANUP_ON_STARTUP": ("cleanup_on_startup", _parse_bool),
    "LOG_LEVEL": ("log_level", str),
}


@lru_cache(maxsize=1)
def _load_default_config() -> DictConfig:
    if not CONFIG_PATH.exists():
        raise FileNotFoundError(f"Default config not found at {CONFIG_PATH}")
    return OmegaConf.load(CONFIG_PATH)


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Collect configuration overrides from environment variables.

    Args:
        environ: Mapping to read from (default: ``os.environ``)

    Returns:
        Dictionary of config keys to parsed values for every variable that is set

    Raises:
        ValueError: If a numeric variable cannot be parsed
    """
    source = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}
    for env_key, (config_key, parser) in ENV_OVERRIDES.items():
        value = source.get(env_key)
        if value is None or value == "":
            continue
        try:
            overrides[config_key] = parser(value)
        except ValueError as exc:
            raise ValueError(f"Invalid value for {env_key}: {value!r}") from exc
    return overrides


def _validate(config: DictConfig) -> None:
    image_format = str(config.image_format).lower()
    if image_format not in IMAGE_FORMATS:
        raise ValueError(f"Unsupported image format {config.image_format!r}; expected one of {', '.join(IMAGE_FORMATS)}")
    config.image_format = image_format

    if float(config.scale) <= 0:
        raise ValueError(f"Render scale must be positive, got {config.scale}")
    if int(config.max_workers) < 1:
        raise ValueError(f"max_workers must be at least 1, got {config.max_workers}")


def make_runtime_config(
    overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DictConfig:
    """
    Build the process configuration.

    Precedence (lowest to highest): packaged defaults, environment variables,
    explicit ``overrides``.

    Args:
        overrides: Nested dictionary of config values to apply last
        environ: Environment mapping (default: ``os.environ``)

    Returns:
        Merged, validated configuration

    Raises:
        omegaconf.errors.ConfigKeyError: If an override names an unknown key
        ValueError: If a value is out of range
    """
    base_container = OmegaConf.to_container(_load_default_config(), resolve=False)
    base = OmegaConf.create(base_container)
    OmegaConf.set_struct(base, True)

    merged = DictConfig(
        OmegaConf.merge(
            base,
            OmegaConf.create(env_overrides(environ)),
            OmegaConf.create(overrides or {}),
        )
    )
    _validate(merged)
    return merged


def config_to_dict(config: DictConfig) -> Dict[str, Any]:
    return OmegaConf.to_container(config, resolve=True, enum_to_str=True)  # type: ignore[return-value]
