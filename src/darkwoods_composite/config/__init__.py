"""Configuration management for darkwoods_composite.

This module provides dataclass-based configuration objects for composite
runs, with support for validation and YAML-based configuration files.
"""

from .models import (
    CompositeConfig,
    ExportConfig,
    MaskingConfig,
)
from .yaml_loader import (
    ConfigurationError,
    load_composite_config,
)

__all__ = [
    # Dataclasses
    "MaskingConfig",
    "ExportConfig",
    "CompositeConfig",
    # YAML loading
    "ConfigurationError",
    "load_composite_config",
]
