"""Sentinel-2 data access subpackage."""

from .aoi import AOI_BUFFER_METERS, parse_aoi, buffer_in_meters, load_aoi
from .cloud_masking import (
    CLEAR_THRESHOLD,
    SCL_ASSET_ID,
    SCL_MASK_VALUES,
    attach_clearness,
    clear_mask,
    clearness_from_scl,
    mask_clouds,
    stack_clearness,
    stack_scl,
)
from .stac_client import (
    SENTINEL_COLLECTION,
    BAND_TO_ASSET,
    DateRangeError,
    DateWindow,
    month_window,
    fetch_items,
    stack_bands,
)

__all__ = [
    # AOI loading
    "AOI_BUFFER_METERS",
    "parse_aoi",
    "buffer_in_meters",
    "load_aoi",
    # Cloud masking
    "CLEAR_THRESHOLD",
    "SCL_ASSET_ID",
    "SCL_MASK_VALUES",
    "attach_clearness",
    "clear_mask",
    "clearness_from_scl",
    "mask_clouds",
    "stack_clearness",
    "stack_scl",
    # STAC client
    "SENTINEL_COLLECTION",
    "BAND_TO_ASSET",
    "DateRangeError",
    "DateWindow",
    "month_window",
    "fetch_items",
    "stack_bands",
]
