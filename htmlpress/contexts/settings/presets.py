"""
Conversion Preset Resolution

Applies named configuration presets to conversion settings. Presets are composable
and can override each other, allowing flexible combination of page layout, quality,
script handling, and limits.

Examples:
    # Apply multiple presets (later overrides earlier)
    >>> settings = load_settings(["page_a4_portrait", "margins_normal"])

    # Mix presets with explicit overrides
    >>> settings = load_settings(["quality_draft"], overrides={"execution_timeout": 10})
"""

import os
from dataclasses import fields
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

from dotenv import load_dotenv
from omegaconf import OmegaConf

from htmlpress.contexts.settings.conversion_settings import (
    ConversionSettings,
    PageMargins,
    PageOrientation,
    PageSize,
)
from htmlpress.exceptions import ConfigurationError

load_dotenv()

DEFAULT_PRESETS_PATH = Path(__file__).parent / "presets.yaml"
PRESETS_PATH = Path(os.getenv("HTMLPRESS_PRESETS_PATH", str(DEFAULT_PRESETS_PATH)))

SETTING_NAMES = {f.name for f in fields(ConversionSettings)}
MARGIN_NAMES = {f.name for f in fields(PageMargins)}
DURATION_SETTINGS = ("javascript_delay", "execution_timeout")


def load_presets(config_path: Optional[Path] = None) -> Dict[str, Dict[str, Any]]:
    """
    Load the presets YAML file and flatten it to a single-level dict.

    Collapses nested structure: page.a4_portrait -> page_a4_portrait

    Args:
        config_path: Optional path to config file (defaults to HTMLPRESS_PRESETS_PATH)

    Returns:
        Flattened dict mapping preset names to setting overrides
        Example: {"page_a4_portrait": {...}, "quality_draft": {...}}
    """
    if config_path is None:
        config_path = PRESETS_PATH

    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigurationError(f"Presets file not found: {config_path}")

    nested = OmegaConf.to_container(OmegaConf.load(config_path), resolve=True)

    flattened = {}
    for category, presets in (nested or {}).items():
        for name, config in presets.items():
            flattened[f"{category}_{name}"] = config

    return flattened


def apply_presets(
    base: Dict[str, Any],
    preset_names: List[str],
    config_path: Optional[Path] = None,
) -> Dict[str, Any]:
    """
    Apply named presets to a settings mapping.

    Presets are applied in order, with later presets overriding earlier ones.
    Nested mappings (margins) are merged key by key.

    Args:
        base: Settings mapping to start from (not modified)
        preset_names: Preset names to apply (e.g., ["page_a4_portrait", "quality_draft"])
        config_path: Optional path to presets file (defaults to HTMLPRESS_PRESETS_PATH)

    Returns:
        New settings mapping with presets applied

    Raises:
        ConfigurationError: If a preset is not found
    """
    presets = load_presets(config_path)

    merged = OmegaConf.create(base)
    for preset_name in preset_names:
        if preset_name not in presets:
            available = sorted(presets.keys())
            raise ConfigurationError(
                f"Preset '{preset_name}' not found. Available presets: {available}"
            )
        merged = OmegaConf.merge(merged, presets[preset_name])

    return OmegaConf.to_container(merged, resolve=True)


def _parse_enum(enum_type: Type[Enum], value: Any) -> Enum:
    if isinstance(value, enum_type):
        return value
    token = str(value).lower()
    for member in enum_type:
        if token in (member.value.lower(), member.name.lower()):
            return member
    choices = [member.value for member in enum_type]
    raise ConfigurationError(f"Invalid {enum_type.__name__} '{value}'. Expected one of: {choices}")


def _parse_duration(name: str, value: Any) -> Optional[timedelta]:
    if value is None or isinstance(value, timedelta):
        return value
    try:
        seconds = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Setting '{name}' must be a number of seconds, got {value!r}") from e
    if seconds < 0:
        raise ConfigurationError(f"Setting '{name}' must not be negative, got {value!r}")
    return timedelta(seconds=seconds)


def _parse_margins(value: Any) -> PageMargins:
    if value is None:
        return PageMargins()
    if isinstance(value, PageMargins):
        return value
    unknown = set(value) - MARGIN_NAMES
    if unknown:
        raise ConfigurationError(f"Unknown margin keys: {sorted(unknown)}")
    return PageMargins(**{side: None if v is None else float(v) for side, v in value.items()})


def settings_from_dict(data: Dict[str, Any]) -> ConversionSettings:
    """
    Build ConversionSettings from a plain mapping (e.g. merged presets).

    Enum values may be given by token ("A4", "Landscape") or member name,
    durations as seconds, margins as a mapping of sides to millimetres.

    Raises:
        ConfigurationError: On unknown keys or unparseable values
    """
    unknown = set(data) - SETTING_NAMES
    if unknown:
        raise ConfigurationError(
            f"Unknown conversion settings: {sorted(unknown)}. Known settings: {sorted(SETTING_NAMES)}"
        )

    kwargs = dict(data)
    if "page_size" in kwargs:
        kwargs["page_size"] = _parse_enum(PageSize, kwargs["page_size"])
    if "orientation" in kwargs:
        kwargs["orientation"] = _parse_enum(PageOrientation, kwargs["orientation"])
    if "margins" in kwargs:
        kwargs["margins"] = _parse_margins(kwargs["margins"])
    for name in DURATION_SETTINGS:
        if name in kwargs:
            kwargs[name] = _parse_duration(name, kwargs[name])

    return ConversionSettings(**kwargs)


def load_settings(
    preset_names: Optional[List[str]] = None,
    overrides: Optional[Dict[str, Any]] = None,
    config_path: Optional[Path] = None,
) -> ConversionSettings:
    """
    Resolve presets plus explicit overrides into ConversionSettings.

    Overrides are applied after every preset. None-valued overrides are skipped
    so CLI options left unset do not clobber preset values.
    """
    data: Dict[str, Any] = {}
    if preset_names:
        data = apply_presets(data, preset_names, config_path)
    if overrides:
        data.update({key: value for key, value in overrides.items() if value is not None})
    return settings_from_dict(data)
