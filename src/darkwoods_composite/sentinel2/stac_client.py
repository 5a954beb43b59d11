"""STAC client utilities for Sentinel-2 data access.

This module turns a (year, start month, end month) request into a date
window, queries a STAC API for Sentinel-2 L2A scenes inside that window,
and stacks the raw reflectance assets into an xarray collection.

STAC Query Workflow
-------------------
1. Build a half-open month window with `month_window()`
2. Query the STAC catalog using `fetch_items()`
3. Stack the reflectance assets into a DataArray using `stack_bands()`

Reflectance is stacked as integers scaled by 10000, with the +1000 DN
offset of processing baseline 04.00 and later removed;
rescaling to [0, 1] is left to ``normalization.normalize_reflectance``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import rioxarray  # noqa: F401  registers the .rio accessor
import stackstac
import xarray as xr
from pystac import Item
from pystac_client import Client
from shapely.geometry import mapping
from shapely.geometry.base import BaseGeometry

from ..bands import BLUE, GREEN, NIR, RED, REFLECTANCE_BANDS, SWIR2

LOGGER = logging.getLogger(__name__)

# =============================================================================
# STAC and Sentinel-2 Constants
# =============================================================================

# STAC collection identifier for Sentinel-2 Level-2A data
SENTINEL_COLLECTION = "sentinel-2-l2a"

DEFAULT_STAC_URL = "https://earth-search.aws.element84.com/v1"

# Mapping from Sentinel-2 band names to STAC asset IDs
BAND_TO_ASSET: Dict[str, str] = {
    BLUE: "blue",
    GREEN: "green",
    RED: "red",
    NIR: "nir",
    SWIR2: "swir22",
}

# Output ground sample distance in meters
SENTINEL_RESOLUTION = 10.0

# Processing baseline from which L2A reflectance carries a +1000 DN offset
BOA_OFFSET_BASELINE = 4.0
BOA_ADD_OFFSET = -1000.0


# =============================================================================
# Temporal Filter
# =============================================================================


class DateRangeError(ValueError):
    """Raised when a month window is malformed."""


@dataclass(frozen=True)
class DateWindow:
    """Half-open acquisition date interval ``[start, end)``.

    Attributes:
        start: First day of the start month (inclusive).
        end: First day of the month after the end month (exclusive).
    """
    start: date
    end: date

    def to_stac_interval(self) -> str:
        """Render the window as a STAC ``datetime`` interval string."""
        last_day = self.end - timedelta(days=1)
        return f"{self.start.isoformat()}T00:00:00Z/{last_day.isoformat()}T23:59:59Z"


def month_window(year: int, start_month: int, end_month: int) -> DateWindow:
    """Compute the date window covering whole months ``start_month..end_month``.

    Args:
        year: Calendar year of the window.
        start_month: First month included (1-12).
        end_month: Last month included (1-12, not before ``start_month``).

    Returns:
        DateWindow from the first day of ``start_month`` up to, but
        excluding, the first day of the month after ``end_month``.

    Raises:
        DateRangeError: If a month is outside 1-12 or ``end_month`` comes
            before ``start_month``.

    Example:
        >>> window = month_window(2024, 9, 9)
        >>> print(window.start, window.end)
        2024-09-01 2024-10-01
    """
    for label, month in (("start_month", start_month), ("end_month", end_month)):
        if not 1 <= month <= 12:
            raise DateRangeError(f"{label} must be in 1-12, got {month}")
    if end_month < start_month:
        raise DateRangeError(
            f"end_month ({end_month}) cannot be before start_month ({start_month}); "
            "cross-year windows are not supported"
        )

    start = date(year, start_month, 1)
    if end_month == 12:
        end = date(year + 1, 1, 1)
    else:
        end = date(year, end_month + 1, 1)
    return DateWindow(start, end)


# =============================================================================
# Collection Query
# =============================================================================


def _item_sort_key(item: Item) -> Tuple[str, str]:
    acquired = item.datetime.isoformat() if item.datetime is not None else ""
    return acquired, item.id


def fetch_items(
    client: Client,
    geometry: BaseGeometry,
    window: DateWindow,
    cloud_cover: Optional[float] = None,
) -> List[Item]:
    """Query the STAC catalog for Sentinel-2 scenes inside ``window``.

    Args:
        client: PySTAC client connected to a STAC API.
        geometry: Area of interest as a Shapely geometry (EPSG:4326).
        window: Acquisition date window.
        cloud_cover: Optional maximum scene cloud cover percentage (0-100).
            None applies no scene-level filter; cloud handling is per pixel.

    Returns:
        Items ordered by acquisition time, then item ID. This ordering is
        the collection order used to break quality mosaic ties.
        Duplicates (same item ID) are removed.
    """
    query = None
    if cloud_cover is not None:
        query = {"eo:cloud_cover": {"lt": cloud_cover}}

    search = client.search(
        collections=[SENTINEL_COLLECTION],
        intersects=mapping(geometry),
        datetime=window.to_stac_interval(),
        query=query,
    )
    items: Dict[str, Item] = {}
    for item in search.items():
        items[item.id] = item

    ordered = sorted(items.values(), key=_item_sort_key)
    LOGGER.info(
        "Found %d Sentinel-2 scenes between %s and %s",
        len(ordered),
        window.start.isoformat(),
        window.end.isoformat(),
    )
    return ordered


def parse_epsg(crs: str) -> int:
    """Parse an EPSG code from ``"EPSG:3005"`` or ``"3005"``."""
    text = str(crs).strip()
    if ":" in text:
        text = text.split(":", 1)[1]
    return int(text)


def stack_options(
    bounds: Tuple[float, float, float, float],
    epsg: int,
    resolution: float,
    chunks: Optional[int],
    dtype: str,
) -> Dict[str, Any]:
    """Keyword arguments shared by every ``stackstac.stack`` call.

    Pixel coordinates are cell centers, so the grid lines up with the
    ``rioxarray`` transform used on export. ``chunksize`` is only passed
    when ``chunks`` is set; otherwise stackstac picks its default chunking.
    """
    options: Dict[str, Any] = dict(
        resolution=resolution,
        epsg=int(epsg),
        bounds_latlon=bounds,
        xy_coords="center",
        dtype=dtype,
        rescale=False,
        properties=False,
    )
    if chunks:
        options["chunksize"] = int(chunks)
    return options


def dn_offset(item: Item, asset_id: str) -> float:
    """Return the digital-number offset to add to ``asset_id`` of ``item``.

    Scenes from processing baseline 04.00 onward store reflectance with a
    +1000 DN offset. The offset is read from the asset's ``raster:bands``
    metadata when present (``offset / scale``), otherwise inferred from the
    ``s2:processing_baseline`` property.
    """
    asset = item.assets.get(asset_id)
    raster_bands = asset.extra_fields.get("raster:bands") if asset is not None else None
    if raster_bands:
        offset = raster_bands[0].get("offset")
        scale = raster_bands[0].get("scale")
        if offset is not None and scale:
            return round(float(offset) / float(scale), 6)

    baseline = item.properties.get("s2:processing_baseline")
    if baseline is None:
        return 0.0
    try:
        baseline_value = float(baseline)
    except (TypeError, ValueError):
        LOGGER.warning("Unrecognized processing baseline '%s' on %s", baseline, item.id)
        return 0.0
    if baseline_value >= BOA_OFFSET_BASELINE:
        return BOA_ADD_OFFSET
    return 0.0


def stack_bands(
    items: Sequence[Item],
    bounds: Tuple[float, float, float, float],
    target_crs: str = "EPSG:3005",
    resolution: float = SENTINEL_RESOLUTION,
    chunks: Optional[int] = 2048,
    bands: Sequence[str] = REFLECTANCE_BANDS,
) -> xr.DataArray:
    """Create a raw reflectance collection from Sentinel-2 STAC items.

    Args:
        items: Sentinel-2 STAC items in collection order.
        bounds: Bounding box in lat/lon (minx, miny, maxx, maxy).
        target_crs: Output CRS (e.g., "EPSG:3005").
        resolution: Output resolution in CRS units (default 10 m).
        chunks: Dask chunk size for x and y. None uses stackstac's default.
        bands: Sentinel-2 band names to stack.

    Returns:
        Lazy 4D DataArray ``(time, band, y, x)`` with band coordinates set
        to Sentinel-2 band names. Values are reflectance scaled by 10000 as
        float32, with the processing-baseline offset removed (see
        ``dn_offset``), NaN where the scene has no data.

    Raises:
        ValueError: If items is empty or a band asset is missing.
    """
    if not items:
        raise ValueError("No Sentinel-2 items available for stacking.")

    asset_ids = []
    for band in bands:
        asset_id = BAND_TO_ASSET[band]
        if asset_id not in items[0].assets:
            raise ValueError(f"Missing Sentinel-2 asset '{asset_id}' on first item.")
        asset_ids.append(asset_id)

    epsg = parse_epsg(target_crs)
    data = stackstac.stack(
        items,
        assets=asset_ids,
        fill_value=np.float32(np.nan),
        **stack_options(bounds, epsg, resolution, chunks, "float32"),
    )
    data = data.reset_coords(drop=True)
    data = data.assign_coords({"band": list(bands)})

    offsets = np.array(
        [[dn_offset(item, asset_id) for asset_id in asset_ids] for item in items],
        dtype="float32",
    )
    if offsets.any():
        LOGGER.info(
            "Removing processing-baseline DN offset from %d of %d scenes",
            int((offsets != 0).any(axis=1).sum()),
            len(items),
        )
        data = data + xr.DataArray(
            offsets, dims=("time", "band"), coords={"band": list(bands)}
        )

    data.rio.write_crs(epsg, inplace=True)
    return data


__all__ = [
    # Constants
    "SENTINEL_COLLECTION",
    "DEFAULT_STAC_URL",
    "BAND_TO_ASSET",
    "SENTINEL_RESOLUTION",
    "BOA_OFFSET_BASELINE",
    "BOA_ADD_OFFSET",
    # Temporal filter
    "DateRangeError",
    "DateWindow",
    "month_window",
    # Functions
    "fetch_items",
    "parse_epsg",
    "stack_options",
    "dn_offset",
    "stack_bands",
]
