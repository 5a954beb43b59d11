"""GeoTIFF export of composite bands.

Each band of a composite is written to its own single-band GeoTIFF:

- visualization bands (red, green, blue) are stretched from
  ``[0, rgb_max]`` reflectance to uint16 with nodata 0
- index bands are written as float32 with nodata -9999; NaN and infinite
  values are both written as nodata

Files land in ``<output_dir>/<prefix>_<YYYY>/<prefix>_<MM><YYYY>_<band>.tif``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Sequence

import numpy as np
import rasterio
import rioxarray  # noqa: F401  registers the .rio accessor
import xarray as xr

from .bands import require_bands
from .rendering import to_uint16

LOGGER = logging.getLogger(__name__)

FLOAT_NODATA = -9999.0
UINT16_NODATA = 0


def export_path(
    output_dir: Path,
    prefix: str,
    year: int,
    month: int,
    band: str,
) -> Path:
    """Return the output path for one exported band."""
    folder = output_dir / f"{prefix}_{year}"
    return folder / f"{prefix}_{month:02d}{year}_{band}.tif"


def write_band(
    array: xr.DataArray,
    path: Path,
    description: str,
    dtype: str,
    nodata: float,
) -> Path:
    """Write a single-band ``(y, x)`` DataArray to a compressed GeoTIFF.

    Args:
        array: 2D DataArray with a CRS and transform.
        path: Output file path. Parent directories are created if needed.
        description: Band description stored in the file.
        dtype: Output data type.
        nodata: Nodata value written to the file metadata.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    array = array.rio.write_nodata(nodata, encoded=False)
    array.rio.to_raster(
        path,
        dtype=dtype,
        compress="deflate",
        tiled=True,
        BIGTIFF="IF_SAFER",
    )
    with rasterio.open(path, "r+") as dst:
        dst.set_band_description(1, description)
    LOGGER.info("Wrote %s", path.name)
    return path


def export_composite(
    image: xr.DataArray,
    output_dir: Path,
    year: int,
    month: int,
    prefix: str = "dw",
    rgb_bands: Sequence[str] = ("B4", "B3", "B2"),
    analytic_bands: Sequence[str] = ("bai", "evi", "nbr"),
    rgb_max: float = 0.25,
) -> Dict[str, Path]:
    """Export every requested band of ``image`` to its own GeoTIFF.

    Args:
        image: Composite with dims ``(band, y, x)`` and a CRS.
        output_dir: Root export directory.
        year: Composite year, used in folder and file names.
        month: Start month of the composite window, used in file names.
        prefix: Folder and file prefix.
        rgb_bands: Bands written as stretched uint16.
        analytic_bands: Bands written as raw float32.
        rgb_max: Reflectance mapped to 65535.

    Returns:
        Mapping of band name to written path.

    Raises:
        BandNotFoundError: If a requested band is missing from ``image``.
        ValueError: If ``image`` has no CRS.
    """
    require_bands(image, list(rgb_bands) + list(analytic_bands))
    if image.rio.crs is None:
        raise ValueError("Composite has no CRS; cannot export GeoTIFF.")

    written: Dict[str, Path] = {}
    for band in rgb_bands:
        data = to_uint16(image.sel(band=band, drop=True), 0.0, rgb_max)
        path = export_path(Path(output_dir), prefix, year, month, band)
        written[band] = write_band(data, path, band, "uint16", UINT16_NODATA)

    for band in analytic_bands:
        data = image.sel(band=band, drop=True).astype("float32")
        data = data.where(np.isfinite(data), FLOAT_NODATA)
        path = export_path(Path(output_dir), prefix, year, month, band)
        written[band] = write_band(data, path, band, "float32", FLOAT_NODATA)

    return written


__all__ = [
    "FLOAT_NODATA",
    "UINT16_NODATA",
    "export_path",
    "write_band",
    "export_composite",
]
