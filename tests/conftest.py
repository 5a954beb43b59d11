"""Shared test fixtures for darkwoods_composite tests."""

from pathlib import Path
from typing import Callable, Optional

import numpy as np
import pytest
import rioxarray  # noqa: F401
import xarray as xr

RAW_BANDS = ["B2", "B3", "B4", "B8", "B12"]
STACK_BANDS = RAW_BANDS + ["cs_cdf"]

# UTM zone 11N origin near the Darkwoods conservation area
ORIGIN_X = 500000.0
ORIGIN_Y = 5450000.0
PIXEL_SIZE = 10.0


def _grid_coords(height: int, width: int):
    xs = ORIGIN_X + (np.arange(width) + 0.5) * PIXEL_SIZE
    ys = ORIGIN_Y - (np.arange(height) + 0.5) * PIXEL_SIZE
    return ys, xs


@pytest.fixture
def stack_factory() -> Callable[..., xr.DataArray]:
    """Return a builder for synthetic ``(time, band, y, x)`` collections.

    The builder takes raw integer-encoded reflectance of shape
    ``(time, 5, y, x)`` (bands B2, B3, B4, B8, B12) and clearness scores of
    shape ``(time, y, x)``, and returns a float64 DataArray in EPSG:32611
    with the score joined as band ``cs_cdf``.
    """

    def _make(
        raw: np.ndarray,
        scores: np.ndarray,
        crs: Optional[int] = 32611,
    ) -> xr.DataArray:
        raw = np.asarray(raw, dtype="float64")
        scores = np.asarray(scores, dtype="float64")
        n_time, _, height, width = raw.shape
        data = np.concatenate([raw, scores[:, np.newaxis]], axis=1)
        ys, xs = _grid_coords(height, width)
        times = np.array(
            [np.datetime64("2024-09-01") + np.timedelta64(5 * i, "D") for i in range(n_time)],
            dtype="datetime64[ns]",
        )
        stack = xr.DataArray(
            data,
            dims=("time", "band", "y", "x"),
            coords={"time": times, "band": STACK_BANDS, "y": ys, "x": xs},
        )
        if crs is not None:
            stack.rio.write_crs(crs, inplace=True)
        return stack

    return _make


@pytest.fixture
def uniform_raw() -> Callable[..., np.ndarray]:
    """Return a builder for raw reflectance filled with per-band constants."""

    def _make(
        n_time: int,
        height: int,
        width: int,
        blue: float = 500,
        green: float = 700,
        red: float = 600,
        nir: float = 3000,
        swir2: float = 1200,
    ) -> np.ndarray:
        values = np.array([blue, green, red, nir, swir2], dtype="float64")
        return np.broadcast_to(
            values[np.newaxis, :, np.newaxis, np.newaxis],
            (n_time, len(values), height, width),
        ).copy()

    return _make


@pytest.fixture
def normalized_image() -> xr.DataArray:
    """A 2x2 normalized reflectance image ``(band, y, x)`` without a score band."""
    ys, xs = _grid_coords(2, 2)
    data = np.array(
        [
            [[0.05, 0.04], [0.03, 0.02]],  # B2 blue
            [[0.07, 0.06], [0.05, 0.04]],  # B3 green
            [[0.06, 0.10], [0.08, 0.20]],  # B4 red
            [[0.30, 0.06], [0.25, 0.20]],  # B8 nir
            [[0.12, 0.10], [0.30, 0.00]],  # B12 swir2
        ],
        dtype="float64",
    )
    return xr.DataArray(
        data,
        dims=("band", "y", "x"),
        coords={"band": RAW_BANDS, "y": ys, "x": xs},
    )


@pytest.fixture
def aoi_gpkg(tmp_path: Path) -> Path:
    """Write a two-feature GeoPackage AOI in EPSG:3005 (BC Albers)."""
    import geopandas as gpd
    from shapely.geometry import box

    path = tmp_path / "aoi.gpkg"
    gdf = gpd.GeoDataFrame(
        {"name": ["darkwoods", "next_creek"]},
        geometry=[
            box(1590000, 500000, 1592000, 502000),
            box(1600000, 500000, 1601000, 501000),
        ],
        crs="EPSG:3005",
    )
    gdf.to_file(path, driver="GPKG")
    return path


@pytest.fixture
def fake_stackstac(monkeypatch):
    """Replace stackstac.stack with a recorder returning constant 1500 DN tiles."""
    calls = []

    def fake_stack(items, assets, **kwargs):
        calls.append(kwargs)
        ys, xs = _grid_coords(2, 2)
        data = np.full((len(items), len(assets), 2, 2), 1500, dtype=kwargs.get("dtype", "float64"))
        return xr.DataArray(
            data,
            dims=("time", "band", "y", "x"),
            coords={
                "time": np.arange(len(items)),
                "band": list(assets),
                "y": ys,
                "x": xs,
            },
        )

    monkeypatch.setattr("stackstac.stack", fake_stack)
    return calls
