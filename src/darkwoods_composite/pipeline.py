"""Clearest-pixel Sentinel-2 composite orchestration.

Composite Pipeline
------------------
1. Load the AOI and grow it by the buffer distance
2. Turn (year, start month, end month) into a date window
3. Query the STAC catalog and stack raw reflectance
4. Join the per-image clearness score
5. Normalize reflectance to [0, 1]
6. Mask pixels below the clearness threshold
7. Compute EVI, BAI and NBR on every image
8. Reduce to a quality mosaic on the clearness score
9. Clip to the AOI and keep the output bands

Steps 5-9 form `build_composite()`, which runs on any in-memory or
dask-backed collection and performs no I/O.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import xarray as xr
from dask import compute as dask_compute
from pystac_client import Client
from shapely.geometry.base import BaseGeometry

from .bands import OUTPUT_BANDS, QA_BAND, REFLECTANCE_BANDS, select_bands
from .config import CompositeConfig
from .export import export_composite
from .indices import add_indices
from .mosaic import clip_to_aoi, empty_composite, quality_mosaic
from .normalization import REFLECTANCE_SCALE, normalize_reflectance, reflectance_range_report
from .sentinel2.aoi import load_aoi
from .sentinel2.cloud_masking import (
    CLEAR_THRESHOLD,
    attach_clearness,
    mask_clouds,
    stack_clearness,
)
from .sentinel2.stac_client import (
    DateWindow,
    fetch_items,
    month_window,
    parse_epsg,
    stack_bands,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompositeResult:
    """Outcome of one composite run.

    Attributes:
        year: Composite year.
        window: Acquisition window used for the query.
        image_count: Number of scenes that entered the mosaic.
        image: The composite ``(band, y, x)``.
        outputs: Exported GeoTIFF paths by band name (empty if not exported).
    """
    year: int
    window: DateWindow
    image_count: int
    image: xr.DataArray
    outputs: Dict[str, Path] = field(default_factory=dict)


def build_composite(
    stack: xr.DataArray,
    config: Optional[CompositeConfig] = None,
    aoi: Optional[BaseGeometry] = None,
    bands: Sequence[str] = OUTPUT_BANDS,
    scale_factor: Optional[float] = None,
    clear_threshold: Optional[float] = None,
    qa_band: Optional[str] = None,
) -> xr.DataArray:
    """Turn a raw collection into the selected-band quality mosaic.

    Args:
        stack: Collection ``(time, band, y, x)`` of raw integer-encoded
            reflectance plus the clearness score band, in collection order.
        config: Source of the scale factor, threshold and score band name.
            Explicit keyword arguments take precedence over it.
        aoi: Optional EPSG:4326 geometry; pixels outside it become NaN.
            Requires ``stack`` to carry a CRS.
        bands: Output bands, in order.

    Returns:
        Composite image ``(band, y, x)`` holding exactly ``bands``.

    Raises:
        BandNotFoundError: If an input or requested band is missing.
    """
    if scale_factor is None:
        scale_factor = config.scale_factor if config else REFLECTANCE_SCALE
    if clear_threshold is None:
        clear_threshold = config.masking.clear_threshold if config else CLEAR_THRESHOLD
    if qa_band is None:
        qa_band = config.masking.qa_band if config else QA_BAND

    normalized = normalize_reflectance(stack, REFLECTANCE_BANDS, scale_factor)
    masked = mask_clouds(normalized, clear_threshold, qa_band)
    indexed = add_indices(masked)
    mosaic = quality_mosaic(indexed, qa_band)
    if aoi is not None:
        mosaic = clip_to_aoi(mosaic, aoi)
    return select_bands(mosaic, bands)


def build_year(
    year: int,
    start_month: int,
    end_month: int,
    aoi: BaseGeometry,
    client: Optional[Client] = None,
    config: Optional[CompositeConfig] = None,
) -> CompositeResult:
    """Build the clearest-pixel composite for one year and month window, with run metadata.

    Args:
        year: Calendar year.
        start_month: First month of the window (1-12).
        end_month: Last month of the window (1-12).
        aoi: Buffered AOI geometry in EPSG:4326.
        client: Open STAC client. Opened from ``config.stac_url`` if None.
        config: Run configuration; defaults apply when None.

    Returns:
        CompositeResult whose image holds `OUTPUT_BANDS`. When no scene
        matches, the image is NaN across the whole AOI.

    Raises:
        DateRangeError: If the month window is malformed. Raised before
            any query is sent.
    """
    window = month_window(year, start_month, end_month)
    if config is None:
        config = CompositeConfig(aoi=aoi.wkt, years=[year])
    if client is None:
        client = Client.open(config.stac_url)

    label = f"Sentinel-2 {window.start.isoformat()}..{window.end.isoformat()}"
    LOGGER.info("=" * 60)
    LOGGER.info("%s -- fetching scenes", label)
    LOGGER.info("=" * 60)
    items = fetch_items(client, aoi, window, config.cloud_cover)

    export_cfg = config.export
    if not items:
        LOGGER.warning("%s -- no Sentinel-2 scenes; composite is fully undefined", label)
        image = empty_composite(OUTPUT_BANDS, aoi, export_cfg.target_crs, export_cfg.resolution)
        return CompositeResult(year=year, window=window, image_count=0, image=image)

    bounds = aoi.bounds
    raw = stack_bands(
        items,
        bounds,
        target_crs=export_cfg.target_crs,
        resolution=export_cfg.resolution,
        chunks=config.chunk_size,
    )
    score = stack_clearness(
        items,
        bounds,
        parse_epsg(export_cfg.target_crs),
        resolution=export_cfg.resolution,
        chunks=config.chunk_size,
        qa_asset=config.masking.qa_band,
    )
    stack = attach_clearness(raw, score, config.masking.qa_band)
    (image,) = dask_compute(build_composite(stack, config, aoi=aoi), scheduler="threads")
    reflectance_range_report(image)
    if bool(image.isnull().all()):
        LOGGER.warning("%s -- no clear pixels in any scene; composite is fully undefined", label)

    LOGGER.info("%s -- composite built from %d scenes", label, len(items))
    return CompositeResult(year=year, window=window, image_count=len(items), image=image)


def composite(
    year: int,
    start_month: int,
    end_month: int,
    aoi: BaseGeometry,
    client: Optional[Client] = None,
    config: Optional[CompositeConfig] = None,
) -> xr.DataArray:
    """Return the composite image ``(band, y, x)`` for one month window.

    Same as `build_year()` without the run metadata.

    Example:
        >>> aoi = load_aoi("darkwoods_nextcreek.gpkg")
        >>> image = composite(2024, 9, 9, aoi)
        >>> list(image.band.values)
        ['B4', 'B3', 'B2', 'B8', 'evi', 'bai', 'nbr']
    """
    return build_year(year, start_month, end_month, aoi, client, config).image


def run_pipeline(config: CompositeConfig, client: Optional[Client] = None) -> List[CompositeResult]:
    """Build (and optionally export) one composite per configured year.

    Args:
        config: Validated run configuration.
        client: Optional open STAC client, shared across years.

    Returns:
        One CompositeResult per year, in configuration order.
    """
    config.validate()
    aoi = load_aoi(config.aoi, config.buffer_meters)
    if client is None:
        client = Client.open(config.stac_url)

    results: List[CompositeResult] = []
    for year in config.years:
        result = build_year(year, config.start_month, config.end_month, aoi, client, config)
        if config.output_dir is not None:
            outputs = export_composite(
                result.image,
                Path(config.output_dir),
                year,
                config.start_month,
                prefix=config.export.file_prefix,
                rgb_bands=config.export.rgb_bands,
                analytic_bands=config.export.analytic_bands,
                rgb_max=config.export.rgb_max,
            )
            result = replace(result, outputs=outputs)
        results.append(result)

    LOGGER.info(
        "Finished %d composite(s): %s",
        len(results),
        ", ".join(f"{r.year} ({r.image_count} scenes)" for r in results),
    )
    return results


__all__ = [
    "CompositeResult",
    "build_composite",
    "build_year",
    "composite",
    "run_pipeline",
]
