"""Cloud-filtered, clearest-pixel Sentinel-2 composites with spectral indices."""

from .bands import OUTPUT_BANDS, BandNotFoundError, select_bands
from .indices import add_indices
from .mosaic import quality_mosaic
from .normalization import normalize_reflectance
from .pipeline import CompositeResult, build_composite, composite, run_pipeline

__version__ = "0.1.0"

__all__ = [
    "OUTPUT_BANDS",
    "BandNotFoundError",
    "select_bands",
    "add_indices",
    "quality_mosaic",
    "normalize_reflectance",
    "CompositeResult",
    "build_composite",
    "composite",
    "run_pipeline",
]
