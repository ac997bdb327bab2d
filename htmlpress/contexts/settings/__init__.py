"""
Settings Context

Responsibilities:
- Models the options of a single HTML to PDF conversion
- Serializes options into the wkhtmltopdf argument string
- Validates header/footer sources before any process is spawned
- Resolves named presets from YAML

Owns: Conversion options, presets, argument serialization
Never: Spawns or talks to the renderer process
"""

from htmlpress.contexts.settings.conversion_settings import (
    ConversionSettings,
    PageMargins,
    PageOrientation,
    PageSize,
)
from htmlpress.contexts.settings.presets import (
    apply_presets,
    load_presets,
    load_settings,
    settings_from_dict,
)

__all__ = [
    "ConversionSettings",
    "PageMargins",
    "PageOrientation",
    "PageSize",
    "apply_presets",
    "load_presets",
    "load_settings",
    "settings_from_dict",
]
