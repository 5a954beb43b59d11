"""YAML configuration file loading for darkwoods_composite."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..sentinel2.aoi import is_existing_file
from .models import CompositeConfig, ExportConfig, MaskingConfig


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""
    pass


def _resolve_path(base_dir: Path, path_str: Optional[str]) -> Optional[Path]:
    """Resolve a path string relative to the config file's directory."""
    if path_str is None:
        return None
    path = Path(path_str)
    if path.is_absolute():
        return path
    return base_dir / path


def _resolve_aoi(base_dir: Path, aoi: str) -> str:
    """Resolve ``aoi`` against ``base_dir`` when it names an existing file there."""
    candidate = str(base_dir / aoi)
    if is_existing_file(candidate):
        return candidate
    return aoi


def _parse_masking_config(data: Dict[str, Any]) -> MaskingConfig:
    masking_data = data.get("masking", {}) or {}
    return MaskingConfig(
        clear_threshold=float(
            masking_data.get("clear_threshold", MaskingConfig.clear_threshold)
        ),
        qa_band=masking_data.get("qa_band", MaskingConfig.qa_band),
    )


def _parse_export_config(data: Dict[str, Any]) -> ExportConfig:
    export_data = data.get("export", {}) or {}
    return ExportConfig(
        file_prefix=export_data.get("file_prefix", ExportConfig.file_prefix),
        target_crs=export_data.get("target_crs", ExportConfig.target_crs),
        resolution=float(export_data.get("resolution", ExportConfig.resolution)),
        rgb_max=float(export_data.get("rgb_max", ExportConfig.rgb_max)),
        rgb_bands=tuple(export_data.get("rgb_bands", ExportConfig.rgb_bands)),
        analytic_bands=tuple(export_data.get("analytic_bands", ExportConfig.analytic_bands)),
    )


def _parse_years(value: Any) -> list:
    if isinstance(value, int):
        return [value]
    if isinstance(value, (list, tuple)) and value:
        return [int(v) for v in value]
    raise ConfigurationError(f"years must be an integer or a list of integers, got {value!r}")


def load_composite_config(
    config_path: Union[str, Path],
    validate: bool = True,
) -> CompositeConfig:
    """Load a CompositeConfig from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.
        validate: Whether to validate the configuration (default: True).

    Returns:
        A CompositeConfig instance.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
        FileNotFoundError: If config_path doesn't exist.
        ValueError: If validate=True and the configuration is invalid.

    Example YAML structure:
        ```yaml
        aoi: ./darkwoods_nextcreek.gpkg
        years: [2023, 2024, 2025]
        start_month: 9
        end_month: 9
        output_dir: ./exports
        buffer_meters: 1000

        masking:
          clear_threshold: 0.6
          qa_band: cs_cdf

        export:
          file_prefix: dw
          target_crs: EPSG:3005
          resolution: 10
        ```
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    base_dir = config_path.parent

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML: {e}")

    if data is None:
        raise ConfigurationError("Configuration file is empty")

    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a YAML mapping (dict)")

    for required in ("aoi", "years"):
        if required not in data:
            raise ConfigurationError(f"Missing required field: {required}")

    cloud_cover = data.get("cloud_cover")
    chunk_size = data.get("chunk_size", CompositeConfig.chunk_size)

    config = CompositeConfig(
        aoi=_resolve_aoi(base_dir, str(data["aoi"])),
        years=_parse_years(data["years"]),
        start_month=int(data.get("start_month", CompositeConfig.start_month)),
        end_month=int(data.get("end_month", CompositeConfig.end_month)),
        output_dir=_resolve_path(base_dir, data.get("output_dir")),
        buffer_meters=float(data.get("buffer_meters", CompositeConfig.buffer_meters)),
        scale_factor=float(data.get("scale_factor", CompositeConfig.scale_factor)),
        stac_url=data.get("stac_url", CompositeConfig.stac_url),
        cloud_cover=float(cloud_cover) if cloud_cover is not None else None,
        chunk_size=int(chunk_size) if chunk_size is not None else None,
        masking=_parse_masking_config(data),
        export=_parse_export_config(data),
    )

    if validate:
        config.validate()

    return config


__all__ = [
    "ConfigurationError",
    "load_composite_config",
]
