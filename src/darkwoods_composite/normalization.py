"""Reflectance normalization for Sentinel-2 L2A imagery.

Sentinel-2 L2A products store surface reflectance as integers scaled by
10000. Every index formula downstream expects unit-interval reflectance, so
the raw bands are divided by that storage factor before anything else runs.

The conversion is a plain per-pixel division:

- no clipping: a stored value of 12000 becomes 1.2 and is kept
- no rounding
- bands that are not reflectance (the clearness score) pass through untouched
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

import numpy as np
import xarray as xr

from .bands import REFLECTANCE_BANDS, band_names, require_bands

LOGGER = logging.getLogger(__name__)

# Sentinel-2 L2A products store reflectance * 10000
REFLECTANCE_SCALE = 10000


def normalize_reflectance(
    image: xr.DataArray,
    bands: Sequence[str] = REFLECTANCE_BANDS,
    scale_factor: float = REFLECTANCE_SCALE,
) -> xr.DataArray:
    """Divide the reflectance bands of ``image`` by the storage scale factor.

    Args:
        image: Image ``(band, y, x)`` or collection ``(time, band, y, x)``
            with integer-encoded reflectance bands.
        bands: Names of the bands to rescale. All other bands are kept as-is.
        scale_factor: Storage scale factor (default 10000).

    Returns:
        DataArray with the same bands, in the same order, where ``bands``
        hold ``value / scale_factor`` as floating point.

    Raises:
        BandNotFoundError: If a band in ``bands`` is missing.
        ValueError: If ``scale_factor`` is not positive.
    """
    if scale_factor <= 0:
        raise ValueError(f"scale_factor must be positive, got {scale_factor}")
    require_bands(image, bands)

    if not np.issubdtype(image.dtype, np.floating):
        image = image.astype("float64")

    is_reflectance = image.coords["band"].isin(list(bands))
    scaled = xr.where(is_reflectance, image / scale_factor, image, keep_attrs=True)
    return scaled.transpose(*image.dims)


def reflectance_range_report(
    image: xr.DataArray,
    bands: Optional[Sequence[str]] = None,
) -> Tuple[float, float]:
    """Report the finite min/max of the reflectance bands.

    Values outside [0, 1] are legal and propagate through the pipeline; they
    are only logged here. This function triggers computation on dask-backed
    arrays.

    Returns:
        ``(min, max)`` of finite values, or ``(nan, nan)`` when every
        sample is undefined.
    """
    if bands is None:
        bands = [name for name in REFLECTANCE_BANDS if name in band_names(image)]
    data = np.asarray(image.sel(band=list(bands)).values, dtype="float64")
    finite = data[np.isfinite(data)]
    if finite.size == 0:
        LOGGER.warning("No finite reflectance values to report.")
        return float("nan"), float("nan")

    min_val = float(finite.min())
    max_val = float(finite.max())
    if max_val > 1.0 or min_val < 0.0:
        LOGGER.warning(
            "Reflectance outside [0, 1] range (min=%.4f, max=%.4f); values are kept.",
            min_val,
            max_val,
        )
    return min_val, max_val


__all__ = [
    "REFLECTANCE_SCALE",
    "normalize_reflectance",
    "reflectance_range_report",
]
