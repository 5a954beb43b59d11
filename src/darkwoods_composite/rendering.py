"""Display stretches for composite bands.

These helpers only prepare composite values for viewing or for 16-bit
export. They never feed back into the data pipeline.
"""

from __future__ import annotations

import numpy as np
import xarray as xr

UINT16_MAX = 65535


def unit_scale(array: xr.DataArray, low: float, high: float) -> xr.DataArray:
    """Linearly map ``[low, high]`` onto ``[0, 1]`` without clamping."""
    if high == low:
        raise ValueError(f"Stretch range is empty: low == high == {low}")
    return (array - low) / (high - low)


def to_uint16(array: xr.DataArray, low: float, high: float) -> xr.DataArray:
    """Stretch ``array`` to the full uint16 range.

    Values are unit-scaled, clamped to [0, 1] and multiplied by 65535.
    Undefined (NaN or infinite) samples become 0.
    """
    scaled = unit_scale(array, low, high).clip(0.0, 1.0) * UINT16_MAX
    scaled = scaled.where(np.isfinite(array), 0.0)
    return scaled.round().astype("uint16")


__all__ = [
    "UINT16_MAX",
    "unit_scale",
    "to_uint16",
]
