"""Spectral indices computed from normalized Sentinel-2 reflectance.

Each ``add_*`` function appends one derived band to its input and reads only
base reflectance bands, so the three can be applied in any order.

| Index | Formula                                          |
|-------|--------------------------------------------------|
| evi   | 2.5 * (NIR - RED) / (NIR + 6*RED - 7.5*BLUE + 1) |
| bai   | 1 / ((0.1 - RED)^2 + (0.06 - NIR)^2)             |
| nbr   | (NIR - SWIR2) / (NIR + SWIR2)                    |

Degenerate denominators produce inf or NaN per pixel instead of raising.
Masked (NaN) inputs yield NaN indices.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Sequence, Tuple

import numpy as np
import xarray as xr

from .bands import BLUE, INDEX_BANDS, NIR, RED, SWIR2, band_names, require_bands

LOGGER = logging.getLogger(__name__)


def _band(image: xr.DataArray, name: str) -> xr.DataArray:
    return image.sel(band=name, drop=True)


def _append_band(image: xr.DataArray, values: xr.DataArray, name: str) -> xr.DataArray:
    """Append ``values`` as band ``name``, replacing an existing band of that name."""
    if name in band_names(image):
        image = image.drop_sel(band=name)
    values = values.expand_dims(band=[name]).transpose(*image.dims)
    values = values.astype(image.dtype, copy=False)
    return xr.concat([image, values], dim="band", coords="minimal", compat="override")


def evi(image: xr.DataArray) -> xr.DataArray:
    require_bands(image, [NIR, RED, BLUE])
    nir, red, blue = _band(image, NIR), _band(image, RED), _band(image, BLUE)
    with np.errstate(divide="ignore", invalid="ignore"):
        return 2.5 * ((nir - red) / (nir + 6 * red - 7.5 * blue + 1))


def bai(image: xr.DataArray) -> xr.DataArray:
    require_bands(image, [RED, NIR])
    red, nir = _band(image, RED), _band(image, NIR)
    with np.errstate(divide="ignore", invalid="ignore"):
        return 1 / ((0.1 - red) ** 2 + (0.06 - nir) ** 2)


def nbr(image: xr.DataArray) -> xr.DataArray:
    require_bands(image, [NIR, SWIR2])
    nir, swir2 = _band(image, NIR), _band(image, SWIR2)
    with np.errstate(divide="ignore", invalid="ignore"):
        return (nir - swir2) / (nir + swir2)


# Index name -> (formula, required bands)
INDEX_FORMULAS: Dict[str, Tuple[Callable[[xr.DataArray], xr.DataArray], Tuple[str, ...]]] = {
    "evi": (evi, (NIR, RED, BLUE)),
    "bai": (bai, (RED, NIR)),
    "nbr": (nbr, (NIR, SWIR2)),
}


def add_index(image: xr.DataArray, name: str) -> xr.DataArray:
    """Compute index ``name`` and append it as a band.

    Raises:
        ValueError: If ``name`` is not a known index.
        BandNotFoundError: If a required reflectance band is missing.
    """
    if name not in INDEX_FORMULAS:
        raise ValueError(f"Unknown index '{name}'. Supported: {sorted(INDEX_FORMULAS)}")
    formula, required = INDEX_FORMULAS[name]
    require_bands(image, required)
    return _append_band(image, formula(image), name)


def add_evi(image: xr.DataArray) -> xr.DataArray:
    """Append the Enhanced Vegetation Index as band ``evi``."""
    return add_index(image, "evi")


def add_bai(image: xr.DataArray) -> xr.DataArray:
    """Append the Burn Area Index as band ``bai``."""
    return add_index(image, "bai")


def add_nbr(image: xr.DataArray) -> xr.DataArray:
    """Append the Normalized Burn Ratio as band ``nbr``."""
    return add_index(image, "nbr")


def add_indices(
    image: xr.DataArray,
    names: Sequence[str] = tuple(INDEX_BANDS),
) -> xr.DataArray:
    """Append every index in ``names`` to ``image``.

    Works on a single image or a ``(time, band, y, x)`` collection.
    """
    for name in names:
        image = add_index(image, name)
    LOGGER.debug("Added indices %s", ", ".join(names))
    return image


__all__ = [
    "INDEX_FORMULAS",
    "evi",
    "bai",
    "nbr",
    "add_index",
    "add_evi",
    "add_bai",
    "add_nbr",
    "add_indices",
]
