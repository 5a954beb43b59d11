"""AOI (Area of Interest) loading and buffering.

The composite is clipped to a vector boundary that is first grown outward
by a fixed distance (1000 m by default). Each polygon of the boundary is
buffered on its own and the results are unioned.

Supported AOI Formats
---------------------
1. **Vector file**: GeoPackage (.gpkg), Shapefile (.shp) or GeoJSON
   (.geojson) path. Reprojected to EPSG:4326 and unioned.
2. **GeoJSON string**: geometry, Feature or FeatureCollection, inline or
   from any other text file (e.g. .json). Taken as EPSG:4326.
3. **WKT**: e.g. "POLYGON ((-116.9 49.2, -116.6 49.2, ...))"
4. **Bounding box**: "minx,miny,maxx,maxy" or "[minx, miny, maxx, maxy]"
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import geopandas as gpd
from shapely import wkt
from shapely.geometry import MultiPolygon, Polygon, box, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

LOGGER = logging.getLogger(__name__)

# Outward buffer applied to the AOI boundary, in meters
AOI_BUFFER_METERS = 1000.0

VECTOR_SUFFIXES = {".gpkg", ".shp", ".geojson"}


def is_existing_file(text: str) -> bool:
    """Return True if ``text`` names an existing file.

    Inline GeoJSON or WKT can exceed the OS path length limit, which makes
    the lookup itself fail; such text is never a path.
    """
    try:
        return Path(text).is_file()
    except (OSError, ValueError):
        return False


def _read_vector(path: Path) -> BaseGeometry:
    gdf = gpd.read_file(path)
    if gdf.empty:
        raise ValueError(f"AOI file '{path}' contains no features.")
    if gdf.crs is not None:
        gdf = gdf.to_crs(4326)
    else:
        LOGGER.warning("AOI file %s has no CRS; assuming EPSG:4326 coordinates.", path)
    geoms = gdf.geometry.dropna()
    if geoms.empty:
        raise ValueError(f"AOI file '{path}' contains no valid geometries.")
    return unary_union(list(geoms))


def _from_geojson(payload: dict) -> BaseGeometry:
    if payload.get("type") == "FeatureCollection":
        return unary_union([shape(feature["geometry"]) for feature in payload["features"]])
    return shape(payload.get("geometry", payload))


def parse_aoi(aoi: str) -> BaseGeometry:
    """Parse an AOI from a path, GeoJSON, WKT or bounding box string.

    Returns:
        Geometry in EPSG:4326 coordinates.

    Raises:
        ValueError: If the AOI is empty or cannot be parsed.
    """
    candidate = aoi.strip()
    path = Path(candidate)
    geom: Optional[BaseGeometry] = None

    if is_existing_file(candidate):
        if path.suffix.lower() in VECTOR_SUFFIXES:
            geom = _read_vector(path)
        else:
            candidate = path.read_text(encoding="utf-8").strip()

    if geom is None:
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError:
            payload = None

        if isinstance(payload, dict):
            geom = _from_geojson(payload)
        elif isinstance(payload, list) and len(payload) == 4:
            geom = box(*[float(v) for v in payload])
        elif candidate.count(",") == 3 and "(" not in candidate:
            geom = box(*[float(x) for x in candidate.split(",")])
        else:
            try:
                geom = wkt.loads(candidate)
            except Exception as exc:
                raise ValueError(f"Could not parse AOI '{candidate[:80]}': {exc}") from exc

    if geom.is_empty:
        raise ValueError("AOI geometry is empty.")
    if not geom.is_valid:
        geom = geom.buffer(0)
    return geom


def buffer_in_meters(geom: BaseGeometry, buffer_meters: float) -> BaseGeometry:
    """Buffer an EPSG:4326 geometry by a distance in meters.

    The geometry is projected to its estimated UTM zone for the buffer and
    reprojected back to WGS84. Non-positive distances return ``geom``.
    """
    if buffer_meters <= 0:
        return geom
    series = gpd.GeoSeries([geom], crs="EPSG:4326")
    projected = series.to_crs(series.estimate_utm_crs())
    buffered = projected.buffer(buffer_meters)
    return buffered.to_crs(4326).iloc[0]


def _polygon_parts(geom: BaseGeometry) -> List[BaseGeometry]:
    if isinstance(geom, Polygon):
        return [geom]
    if isinstance(geom, MultiPolygon):
        return list(geom.geoms)
    if hasattr(geom, "geoms"):
        return [part for part in geom.geoms if not part.is_empty]
    return [geom]


def load_aoi(aoi: str, buffer_meters: float = AOI_BUFFER_METERS) -> BaseGeometry:
    """Load an AOI and grow each of its polygons by ``buffer_meters``.

    Args:
        aoi: Any AOI definition accepted by `parse_aoi()`.
        buffer_meters: Outward buffer distance in meters (default 1000).

    Returns:
        Buffered AOI geometry in EPSG:4326.
    """
    geom = parse_aoi(aoi)
    parts = [buffer_in_meters(part, buffer_meters) for part in _polygon_parts(geom)]
    buffered = unary_union([part for part in parts if not part.is_empty])
    if buffered.is_empty:
        raise ValueError("AOI geometry is empty after buffering.")
    LOGGER.info(
        "Loaded AOI with %d part(s), buffered by %.0f m; bounds=%s",
        len(parts),
        buffer_meters,
        tuple(round(v, 5) for v in buffered.bounds),
    )
    return buffered


__all__ = [
    "AOI_BUFFER_METERS",
    "parse_aoi",
    "buffer_in_meters",
    "load_aoi",
]
