"""Configuration dataclasses for darkwoods_composite runs.

The thresholds and scale factors used by the pipeline are plain named
defaults here and travel into the pipeline through these objects, so a
single run can override any of them. Instances can be built from CLI
arguments, environment variables, or YAML files.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, Tuple


# =============================================================================
# Default Values
# =============================================================================

DEFAULT_CLEAR_THRESHOLD = 0.6
DEFAULT_QA_BAND = "cs_cdf"

DEFAULT_BUFFER_METERS = 1000.0
DEFAULT_SCALE_FACTOR = 10000.0
DEFAULT_START_MONTH = 9
DEFAULT_END_MONTH = 9
DEFAULT_STAC_URL = "https://earth-search.aws.element84.com/v1"
DEFAULT_CHUNK_SIZE = 2048

DEFAULT_FILE_PREFIX = "dw"
DEFAULT_TARGET_CRS = "EPSG:3005"
DEFAULT_RESOLUTION = 10.0
DEFAULT_RGB_MAX = 0.25
DEFAULT_RGB_BANDS: Tuple[str, ...] = ("B4", "B3", "B2")
DEFAULT_ANALYTIC_BANDS: Tuple[str, ...] = ("bai", "evi", "nbr")


# =============================================================================
# Component Configurations
# =============================================================================

@dataclass
class MaskingConfig:
    """Configuration for per-pixel cloud masking.

    Attributes:
        clear_threshold: Minimum clearness score for a pixel to be kept.
        qa_band: Name of the clearness score band.
    """
    clear_threshold: float = DEFAULT_CLEAR_THRESHOLD
    qa_band: str = DEFAULT_QA_BAND

    def validate(self) -> None:
        """Validate masking configuration.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not 0.0 <= self.clear_threshold <= 1.0:
            raise ValueError(
                f"clear_threshold must be within [0, 1], got {self.clear_threshold}"
            )
        if not self.qa_band:
            raise ValueError("qa_band must be specified")


@dataclass
class ExportConfig:
    """Configuration for writing composite bands to GeoTIFF.

    Attributes:
        file_prefix: Prefix of output folders and files (e.g. "dw").
        target_crs: CRS of the composite grid and output files.
        resolution: Ground sample distance in CRS units.
        rgb_max: Reflectance mapped to the top of the uint16 range.
        rgb_bands: Bands exported as scaled uint16.
        analytic_bands: Bands exported as raw float32.
    """
    file_prefix: str = DEFAULT_FILE_PREFIX
    target_crs: str = DEFAULT_TARGET_CRS
    resolution: float = DEFAULT_RESOLUTION
    rgb_max: float = DEFAULT_RGB_MAX
    rgb_bands: Tuple[str, ...] = DEFAULT_RGB_BANDS
    analytic_bands: Tuple[str, ...] = DEFAULT_ANALYTIC_BANDS

    def validate(self) -> None:
        """Validate export configuration.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.file_prefix:
            raise ValueError("file_prefix must be specified")
        if not self.target_crs:
            raise ValueError("target_crs must be specified")
        if self.resolution <= 0:
            raise ValueError(f"resolution must be positive, got {self.resolution}")
        if self.rgb_max <= 0:
            raise ValueError(f"rgb_max must be positive, got {self.rgb_max}")
        overlap = set(self.rgb_bands) & set(self.analytic_bands)
        if overlap:
            raise ValueError(f"Bands cannot be both rgb and analytic: {sorted(overlap)}")


# =============================================================================
# Main Configuration
# =============================================================================

@dataclass
class CompositeConfig:
    """Complete configuration for building and exporting composites.

    Attributes:
        aoi: AOI definition (vector path, GeoJSON, WKT or bbox).
        years: Years to build a composite for.
        start_month: First month of the window (1-12).
        end_month: Last month of the window (1-12).
        output_dir: Directory for exported GeoTIFFs. None skips export.
        buffer_meters: Outward AOI buffer in meters.
        scale_factor: Reflectance storage scale factor.
        stac_url: STAC API endpoint.
        cloud_cover: Optional maximum scene cloud cover (0-100).
        chunk_size: Dask chunk size for x/y (None = stackstac default chunking).
        masking: Cloud masking settings.
        export: Export settings.
    """
    aoi: str
    years: Sequence[int]
    start_month: int = DEFAULT_START_MONTH
    end_month: int = DEFAULT_END_MONTH
    output_dir: Optional[Path] = None
    buffer_meters: float = DEFAULT_BUFFER_METERS
    scale_factor: float = DEFAULT_SCALE_FACTOR
    stac_url: str = DEFAULT_STAC_URL
    cloud_cover: Optional[float] = None
    chunk_size: Optional[int] = DEFAULT_CHUNK_SIZE
    masking: MaskingConfig = field(default_factory=MaskingConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    def validate(self) -> None:
        """Validate the complete configuration.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.aoi:
            raise ValueError("aoi must be specified")
        if not self.years:
            raise ValueError("at least one year must be specified")
        for label, month in (("start_month", self.start_month), ("end_month", self.end_month)):
            if not 1 <= month <= 12:
                raise ValueError(f"{label} must be in 1-12, got {month}")
        if self.end_month < self.start_month:
            raise ValueError(
                f"end_month ({self.end_month}) cannot be before start_month ({self.start_month})"
            )
        if self.buffer_meters < 0:
            raise ValueError(f"buffer_meters must be non-negative, got {self.buffer_meters}")
        if self.scale_factor <= 0:
            raise ValueError(f"scale_factor must be positive, got {self.scale_factor}")
        if self.cloud_cover is not None and not 0 <= self.cloud_cover <= 100:
            raise ValueError(f"cloud_cover must be within [0, 100], got {self.cloud_cover}")
        if self.chunk_size is not None and self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

        self.masking.validate()
        self.export.validate()
