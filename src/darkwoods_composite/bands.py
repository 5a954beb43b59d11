"""Band naming and band selection for composite images.

Images are ``xarray.DataArray`` objects with a ``band`` dimension whose
coordinate holds the band names. A single image has dims ``(band, y, x)``;
an image collection adds a leading ``time`` dimension.

Band Names
----------
| Name   | Meaning                          |
|--------|----------------------------------|
| B2     | Blue surface reflectance         |
| B3     | Green surface reflectance        |
| B4     | Red surface reflectance          |
| B8     | Near-infrared reflectance        |
| B12    | Shortwave-infrared 2 reflectance |
| cs_cdf | Clearness score in [0, 1]        |
| evi    | Enhanced Vegetation Index        |
| bai    | Burn Area Index                  |
| nbr    | Normalized Burn Ratio            |
"""

from __future__ import annotations

from typing import Dict, List, Sequence

import xarray as xr

BLUE = "B2"
GREEN = "B3"
RED = "B4"
NIR = "B8"
SWIR2 = "B12"

# Clearness score band joined onto every image
QA_BAND = "cs_cdf"

REFLECTANCE_BANDS: List[str] = [BLUE, GREEN, RED, NIR, SWIR2]
INDEX_BANDS: List[str] = ["evi", "bai", "nbr"]

# Red, green, blue, NIR followed by the three indices
OUTPUT_BANDS: List[str] = [RED, GREEN, BLUE, NIR] + INDEX_BANDS

BAND_ALIASES: Dict[str, str] = {
    "blue": BLUE,
    "green": GREEN,
    "red": RED,
    "nir": NIR,
    "swir2": SWIR2,
}


class BandNotFoundError(KeyError):
    """Raised when an operation references a band absent from its input."""

    def __init__(self, missing: Sequence[str], available: Sequence[str]):
        self.missing = list(missing)
        self.available = list(available)
        super().__init__(
            f"Band(s) {self.missing} not found. Available bands: {self.available}"
        )

    def __str__(self) -> str:
        return self.args[0]


def band_names(image: xr.DataArray) -> List[str]:
    """Return the band names carried by ``image``."""
    if "band" not in image.dims:
        raise ValueError("Image has no 'band' dimension.")
    return [str(name) for name in image.coords["band"].values]


def resolve_band(name: str) -> str:
    """Map a friendly alias (``"red"``) to its Sentinel-2 band name."""
    return BAND_ALIASES.get(name.lower(), name)


def require_bands(image: xr.DataArray, names: Sequence[str]) -> None:
    """Raise ``BandNotFoundError`` unless every band in ``names`` exists."""
    available = band_names(image)
    missing = [name for name in names if name not in available]
    if missing:
        raise BandNotFoundError(missing, available)


def select_bands(image: xr.DataArray, names: Sequence[str]) -> xr.DataArray:
    """Project ``image`` onto ``names``, in the requested order.

    Values are returned unchanged. Aliases such as ``"nir"`` are resolved to
    their Sentinel-2 band names first.

    Args:
        image: Image or image collection with a ``band`` dimension.
        names: Ordered band names to keep.

    Returns:
        DataArray containing exactly the requested bands.

    Raises:
        BandNotFoundError: If any requested band is missing.
    """
    resolved = [resolve_band(name) for name in names]
    require_bands(image, resolved)
    return image.sel(band=resolved)


__all__ = [
    "BLUE",
    "GREEN",
    "RED",
    "NIR",
    "SWIR2",
    "QA_BAND",
    "REFLECTANCE_BANDS",
    "INDEX_BANDS",
    "OUTPUT_BANDS",
    "BAND_ALIASES",
    "BandNotFoundError",
    "band_names",
    "resolve_band",
    "require_bands",
    "select_bands",
]
