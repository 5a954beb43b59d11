"""Per-pixel quality mosaic and AOI clipping.

The quality mosaic collapses an image collection ``(time, band, y, x)`` into
one image ``(band, y, x)``. At every pixel, all bands are copied from the
single image whose clearness score is highest there; values are never
blended across images.

Selection Rules
---------------
1. Undefined (NaN) scores never win.
2. Ties go to the earliest image in collection order.
3. Pixels where no image has a defined score are NaN in every band.
4. An empty collection produces an image that is NaN everywhere.
"""

from __future__ import annotations

import logging
from typing import Sequence

import geopandas as gpd
import numpy as np
import rioxarray  # noqa: F401  registers the .rio accessor
import xarray as xr
from rasterio.transform import from_origin
from shapely.geometry import mapping
from shapely.geometry.base import BaseGeometry

from .bands import QA_BAND, require_bands

LOGGER = logging.getLogger(__name__)


def source_index(stack: xr.DataArray, qa_band: str = QA_BAND) -> xr.DataArray:
    """Return the winning ``time`` position for every pixel.

    Args:
        stack: Collection with dims ``(time, band, y, x)``.
        qa_band: Name of the clearness score band.

    Returns:
        Integer DataArray ``(y, x)`` holding the index along ``time`` of the
        image with the highest score, or -1 where no image is admissible.
    """
    require_bands(stack, [qa_band])
    score = stack.sel(band=qa_band, drop=True)
    if stack.sizes["time"] == 0:
        shape = (stack.sizes["y"], stack.sizes["x"])
        return xr.DataArray(
            np.full(shape, -1, dtype="int64"),
            dims=("y", "x"),
            coords={"y": stack.coords["y"], "x": stack.coords["x"]},
        )

    defined = score.notnull()
    # argmax returns the first maximum, which gives first-encountered-wins ties
    winner = score.fillna(-np.inf).argmax(dim="time")
    return winner.where(defined.any(dim="time"), -1).astype("int64")


def quality_mosaic(stack: xr.DataArray, qa_band: str = QA_BAND) -> xr.DataArray:
    """Reduce a collection to its clearest-pixel composite.

    Args:
        stack: Collection with dims ``(time, band, y, x)`` in collection
            order. Masked samples must be NaN.
        qa_band: Name of the clearness score band used for selection.

    Returns:
        Image with dims ``(band, y, x)`` carrying every input band.

    Raises:
        BandNotFoundError: If ``qa_band`` is missing.
    """
    require_bands(stack, [qa_band])
    n_images = stack.sizes["time"]
    dtype = stack.dtype if np.issubdtype(stack.dtype, np.floating) else np.dtype("float64")
    if n_images == 0:
        LOGGER.warning("Quality mosaic received an empty collection; result is fully undefined.")
        shape = tuple(stack.sizes[dim] for dim in ("band", "y", "x"))
        return xr.DataArray(
            np.full(shape, np.nan, dtype=dtype),
            dims=("band", "y", "x"),
            coords={dim: stack.coords[dim] for dim in ("band", "y", "x")},
            attrs=stack.attrs,
        )

    winner = source_index(stack, qa_band)
    mosaic = xr.full_like(stack.isel(time=0, drop=True), np.nan, dtype=dtype)
    for position in range(n_images):
        image = stack.isel(time=position, drop=True)
        mosaic = xr.where(winner == position, image, mosaic, keep_attrs=True)

    LOGGER.info("Quality mosaic built from %d images", n_images)
    return mosaic.transpose("band", "y", "x")


def clip_to_aoi(
    image: xr.DataArray,
    geometry: BaseGeometry,
    crs: str = "EPSG:4326",
) -> xr.DataArray:
    """Mark pixels outside ``geometry`` as undefined.

    The grid is left unchanged (``drop=False``); only values outside the AOI
    become NaN. ``image`` must carry a CRS (``image.rio.crs``).
    """
    if image.rio.crs is None:
        raise ValueError("Image has no CRS; cannot clip to AOI.")
    return image.rio.clip([mapping(geometry)], crs=crs, all_touched=False, drop=False)


def empty_composite(
    bands: Sequence[str],
    geometry: BaseGeometry,
    crs: str,
    resolution: float = 10.0,
    geometry_crs: str = "EPSG:4326",
) -> xr.DataArray:
    """Build an all-NaN image covering ``geometry`` on a ``resolution`` grid.

    Used when the collection query returns nothing, so the composite still
    spans the AOI with the expected band schema.
    """
    projected = gpd.GeoSeries([geometry], crs=geometry_crs).to_crs(crs)
    minx, miny, maxx, maxy = projected.total_bounds
    width = max(1, int(np.ceil((maxx - minx) / resolution)))
    height = max(1, int(np.ceil((maxy - miny) / resolution)))
    transform = from_origin(minx, maxy, resolution, resolution)

    xs = minx + (np.arange(width) + 0.5) * resolution
    ys = maxy - (np.arange(height) + 0.5) * resolution
    image = xr.DataArray(
        np.full((len(bands), height, width), np.nan, dtype="float64"),
        dims=("band", "y", "x"),
        coords={"band": list(bands), "y": ys, "x": xs},
    )
    image.rio.write_crs(crs, inplace=True)
    image.rio.write_transform(transform, inplace=True)
    return image


__all__ = [
    "source_index",
    "quality_mosaic",
    "clip_to_aoi",
    "empty_composite",
]
