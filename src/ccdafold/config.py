"""Configuration management for ccdafold.

Loads the TOML config file that controls which converters run and how the
bundle is written out.
"""

from __future__ import annotations

import sys
import tomllib
from pathlib import Path

from ccdafold.executor import ConverterRegistry, default_registry

DEFAULT_CONFIG_PATH = "ccdafold.toml"

DEFAULT_CONFIG_TEMPLATE = """\
# ccdafold configuration

[conversion]
# Convert only the patient (recordTarget), skipping every section converter
patient_only = false
# Parse documents with lxml's recovery mode (tolerates encoding problems)
recover_xml = false
# Converter keys to leave out, e.g. ["Observation.social-history"]
disabled = []

[output]
# JSON indentation of the written bundle
indent = 2
"""


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> dict:
    """Load configuration from a TOML file.

    Returns a dict with ``conversion`` and ``output`` sections. Falls back to
    defaults if the config file doesn't exist.
    """
    path = Path(config_path)
    if not path.exists():
        print(
            f"Warning: Config file '{config_path}' not found, using defaults.",
            file=sys.stderr,
        )
        return _default_config()

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    config = _default_config()
    for section in ("conversion", "output"):
        if section in raw:
            config[section].update(raw[section])
    return config


def registry_from_config(config: dict) -> ConverterRegistry:
    """Build the default registry minus the converters the config disables."""
    registry = default_registry()
    for key in config["conversion"].get("disabled", []):
        if not registry.unregister(key):
            print(f"Warning: Unknown converter '{key}' in disabled list", file=sys.stderr)
    return registry


def generate_config(config_path: str = DEFAULT_CONFIG_PATH) -> str:
    """Write the default config template and return its path."""
    Path(config_path).write_text(DEFAULT_CONFIG_TEMPLATE)
    return config_path


def _default_config() -> dict:
    """Return default configuration."""
    return {
        "conversion": {
            "patient_only": False,
            "recover_xml": False,
            "disabled": [],
        },
        "output": {
            "indent": 2,
        },
    }
