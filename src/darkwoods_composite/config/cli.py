"""CLI argument parsing and configuration building for darkwoods_composite."""

import argparse
import os
from dataclasses import replace
from pathlib import Path
from typing import Optional

from .models import (
    DEFAULT_BUFFER_METERS,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CLEAR_THRESHOLD,
    DEFAULT_END_MONTH,
    DEFAULT_FILE_PREFIX,
    DEFAULT_QA_BAND,
    DEFAULT_RESOLUTION,
    DEFAULT_SCALE_FACTOR,
    DEFAULT_STAC_URL,
    DEFAULT_START_MONTH,
    DEFAULT_TARGET_CRS,
    CompositeConfig,
    ExportConfig,
    MaskingConfig,
)
from .yaml_loader import ConfigurationError, load_composite_config


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or str(value).strip() == "":
        return None
    return float(value)


def add_composite_args(parser: argparse.ArgumentParser) -> None:
    """Add composite arguments to an ArgumentParser.

    Every argument defaults to None when not given, so values from a YAML
    ``--config`` are only overridden by arguments that were actually passed
    (or set through the environment).
    """
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a YAML configuration file. CLI arguments override YAML values.",
    )
    parser.add_argument(
        "--aoi",
        default=os.getenv("COMPOSITE_AOI"),
        help=(
            "AOI path or geometry (GeoPackage, Shapefile, GeoJSON, WKT, or bbox). "
            "Pass a bbox starting with a negative longitude as --aoi=-117.01,49.0,-116.98,49.5"
        ),
    )
    parser.add_argument(
        "--years",
        nargs="+",
        type=int,
        default=None,
        help="Years to build composites for (e.g., 2023 2024 2025).",
    )
    parser.add_argument(
        "--start-month",
        type=int,
        default=None,
        help=f"First month of the window, 1-12 (default: {DEFAULT_START_MONTH}).",
    )
    parser.add_argument(
        "--end-month",
        type=int,
        default=None,
        help=f"Last month of the window, 1-12 (default: {DEFAULT_END_MONTH}).",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=os.getenv("COMPOSITE_OUTPUT_DIR"),
        help="Directory for exported GeoTIFFs. Export is skipped when omitted.",
    )
    parser.add_argument(
        "--buffer-meters",
        type=float,
        default=None,
        help=f"Outward AOI buffer in meters (default: {DEFAULT_BUFFER_METERS:g}).",
    )
    parser.add_argument(
        "--scale-factor",
        type=float,
        default=None,
        help=f"Reflectance storage scale factor (default: {DEFAULT_SCALE_FACTOR:g}).",
    )
    parser.add_argument(
        "--clear-threshold",
        type=float,
        default=_optional_float(os.getenv("COMPOSITE_CLEAR_THRESHOLD")),
        help=f"Minimum clearness score kept by the cloud mask (default: {DEFAULT_CLEAR_THRESHOLD}).",
    )
    parser.add_argument(
        "--qa-band",
        default=None,
        help=f"Clearness score band / asset name (default: {DEFAULT_QA_BAND}).",
    )
    parser.add_argument(
        "--stac-url",
        default=os.getenv("STAC_URL"),
        help=f"STAC API endpoint (default: {DEFAULT_STAC_URL}).",
    )
    parser.add_argument(
        "--cloud-cover",
        type=float,
        default=None,
        help="Optional maximum scene cloud cover percentage for the STAC query.",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help=f"Dask chunk size in pixels (default: {DEFAULT_CHUNK_SIZE}).",
    )
    parser.add_argument(
        "--file-prefix",
        default=None,
        help=f"Prefix of exported folders and files (default: {DEFAULT_FILE_PREFIX}).",
    )
    parser.add_argument(
        "--target-crs",
        default=os.getenv("COMPOSITE_TARGET_CRS"),
        help=f"CRS of the composite and exports (default: {DEFAULT_TARGET_CRS}).",
    )
    parser.add_argument(
        "--resolution",
        type=float,
        default=None,
        help=f"Output resolution in CRS units (default: {DEFAULT_RESOLUTION:g}).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )


def _override(config, **values):
    """Return ``config`` with every non-None value in ``values`` replaced."""
    changes = {key: value for key, value in values.items() if value is not None}
    return replace(config, **changes) if changes else config


def build_composite_config(args: argparse.Namespace) -> CompositeConfig:
    """Build a validated CompositeConfig from parsed arguments.

    When ``--config`` is given the YAML file provides the base values and
    explicitly passed arguments override them.

    Raises:
        ConfigurationError: If required values are missing.
        ValueError: If the resulting configuration is invalid.
    """
    if args.config is not None:
        config = load_composite_config(args.config, validate=False)
    else:
        if not args.aoi:
            raise ConfigurationError("--aoi (or COMPOSITE_AOI) must be supplied.")
        if not args.years:
            raise ConfigurationError("--years must be supplied.")
        config = CompositeConfig(aoi=args.aoi, years=list(args.years))

    masking = _override(
        config.masking,
        clear_threshold=args.clear_threshold,
        qa_band=args.qa_band,
    )
    export = _override(
        config.export,
        file_prefix=args.file_prefix,
        target_crs=args.target_crs,
        resolution=args.resolution,
    )
    config = _override(
        config,
        aoi=args.aoi,
        years=list(args.years) if args.years else None,
        start_month=args.start_month,
        end_month=args.end_month,
        output_dir=Path(args.output_dir) if args.output_dir else None,
        buffer_meters=args.buffer_meters,
        scale_factor=args.scale_factor,
        stac_url=args.stac_url,
        cloud_cover=args.cloud_cover,
        chunk_size=args.chunk_size,
    )
    config = replace(config, masking=masking, export=export)
    config.validate()
    return config


__all__ = [
    "add_composite_args",
    "build_composite_config",
]
