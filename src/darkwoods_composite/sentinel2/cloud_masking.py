"""Clearness scores and cloud masking for Sentinel-2 imagery.

Every image in a collection carries a clearness score band (``cs_cdf``) in
[0, 1]. A pixel is admissible when its score is at or above the clearness
threshold (0.6); every other pixel is set to NaN in all bands, the score
band included.

Clearness Score Sources
-----------------------
1. A ``cs_cdf`` asset published alongside the scene (Cloud Score+ style
   probability that the pixel is clear) is stacked directly.
2. Otherwise the score is derived from the Scene Classification Layer (SCL):

| SCL Value | Class Description        | Score |
|-----------|--------------------------|-------|
| 0         | No data                  | NaN   |
| 3         | Cloud shadows            | 0.0   |
| 8         | Cloud medium probability | 0.0   |
| 9         | Cloud high probability   | 0.0   |
| 10        | Thin cirrus              | 0.0   |
| 11        | Snow                     | 0.0   |
| other     | Clear surface classes    | 1.0   |
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Set, Tuple

import stackstac
import xarray as xr
from pystac import Item

from ..bands import QA_BAND, band_names, require_bands
from .stac_client import stack_options

LOGGER = logging.getLogger(__name__)

# SCL asset identifier in STAC items
SCL_ASSET_ID = "scl"

# Cloud shadows (3), cloud medium (8), cloud high (9), thin cirrus (10), snow (11)
SCL_MASK_VALUES: Set[int] = {3, 8, 9, 10, 11}
SCL_NODATA = 0

# Pixels with a clearness score below this are masked
CLEAR_THRESHOLD = 0.6


def stack_scl(
    items: Sequence[Item],
    bounds: Tuple[float, float, float, float],
    epsg: int,
    resolution: float = 10.0,
    chunks: Optional[int] = 2048,
) -> xr.DataArray:
    """Create a Scene Classification Layer stack ``(time, y, x)`` from STAC items.

    Raises:
        ValueError: If the items carry no SCL asset.
    """
    if SCL_ASSET_ID not in items[0].assets:
        raise ValueError(f"Sentinel-2 item missing {SCL_ASSET_ID} asset.")

    scl = stackstac.stack(
        items,
        assets=[SCL_ASSET_ID],
        **stack_options(bounds, epsg, resolution, chunks, "float64"),
    ).squeeze("band", drop=True)
    return scl.reset_coords(drop=True)


def clearness_from_scl(
    scl: xr.DataArray,
    mask_values: Optional[Set[int]] = None,
) -> xr.DataArray:
    """Derive a clearness score from SCL classes.

    Returns:
        Float DataArray with the same dims as ``scl``: 1.0 for clear classes,
        0.0 for ``mask_values``, NaN for SCL no-data or missing samples.
    """
    if mask_values is None:
        mask_values = SCL_MASK_VALUES

    cloudy = scl.isin(sorted(mask_values))
    score = xr.where(cloudy, 0.0, 1.0)
    missing = scl.isnull() | (scl == SCL_NODATA)
    return score.where(~missing).rename(QA_BAND)


def stack_clearness(
    items: Sequence[Item],
    bounds: Tuple[float, float, float, float],
    epsg: int,
    resolution: float = 10.0,
    chunks: Optional[int] = 2048,
    qa_asset: str = QA_BAND,
) -> xr.DataArray:
    """Stack a per-image clearness score ``(time, y, x)`` for ``items``.

    Uses the ``qa_asset`` when every item publishes it and falls back to the
    SCL-derived score otherwise.
    """
    if all(qa_asset in item.assets for item in items):
        score = stackstac.stack(
            items,
            assets=[qa_asset],
            **stack_options(bounds, epsg, resolution, chunks, "float64"),
        ).squeeze("band", drop=True)
        return score.reset_coords(drop=True).rename(QA_BAND)

    LOGGER.warning(
        "Clearness asset '%s' not published for all items; deriving score from SCL.",
        qa_asset,
    )
    scl = stack_scl(items, bounds, epsg, resolution=resolution, chunks=chunks)
    return clearness_from_scl(scl)


def attach_clearness(
    stack: xr.DataArray,
    score: xr.DataArray,
    qa_band: str = QA_BAND,
) -> xr.DataArray:
    """Join a clearness score onto a band stack as band ``qa_band``.

    Images are matched by their position along ``time``; both inputs must
    come from the same ordered item list.

    Raises:
        ValueError: If the two inputs disagree on the number of images.
    """
    if stack.sizes["time"] != score.sizes["time"]:
        raise ValueError(
            f"Clearness score has {score.sizes['time']} images, "
            f"band stack has {stack.sizes['time']}."
        )
    if qa_band in band_names(stack):
        stack = stack.drop_sel(band=qa_band)

    # Same grid by construction; share coordinates so concat cannot misalign
    scalar_coords = {name: coord for name, coord in stack.coords.items() if coord.ndim == 0}
    score = score.assign_coords(
        time=stack.coords["time"],
        y=stack.coords["y"],
        x=stack.coords["x"],
        **scalar_coords,
    )
    score = score.expand_dims(band=[qa_band]).transpose(*stack.dims)
    score = score.astype(stack.dtype, copy=False)
    return xr.concat([stack, score], dim="band", coords="minimal", compat="override")


def clear_mask(score: xr.DataArray, threshold: float = CLEAR_THRESHOLD) -> xr.DataArray:
    """Return True where ``score`` is at or above ``threshold``; NaN counts as not clear."""
    return score >= threshold


def mask_clouds(
    image: xr.DataArray,
    threshold: float = CLEAR_THRESHOLD,
    qa_band: str = QA_BAND,
) -> xr.DataArray:
    """Set every band to NaN where the clearness score is below ``threshold``.

    Works on a single image ``(band, y, x)`` or a collection
    ``(time, band, y, x)``. Pixels at or above the threshold pass through
    unchanged, and applying the mask twice has no further effect.

    Raises:
        BandNotFoundError: If ``qa_band`` is missing.
    """
    require_bands(image, [qa_band])
    clear = clear_mask(image.sel(band=qa_band, drop=True), threshold)
    return image.where(clear)


__all__ = [
    "SCL_ASSET_ID",
    "SCL_MASK_VALUES",
    "SCL_NODATA",
    "CLEAR_THRESHOLD",
    "stack_scl",
    "clearness_from_scl",
    "stack_clearness",
    "attach_clearness",
    "clear_mask",
    "mask_clouds",
]
