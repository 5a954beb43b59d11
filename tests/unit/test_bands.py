"""Unit tests for band selection."""

import numpy as np
import pytest
import xarray as xr

from darkwoods_composite.bands import (
    OUTPUT_BANDS,
    REFLECTANCE_BANDS,
    BandNotFoundError,
    band_names,
    require_bands,
    resolve_band,
    select_bands,
)


class TestConstants:
    """Tests for band constants."""

    def test_reflectance_bands(self):
        """Blue, green, red, NIR and SWIR2 in that order."""
        assert REFLECTANCE_BANDS == ["B2", "B3", "B4", "B8", "B12"]

    def test_output_bands(self):
        """Red, green, blue, NIR followed by the three indices."""
        assert OUTPUT_BANDS == ["B4", "B3", "B2", "B8", "evi", "bai", "nbr"]

    def test_aliases_resolve(self):
        assert resolve_band("nir") == "B8"
        assert resolve_band("RED") == "B4"
        assert resolve_band("evi") == "evi"


class TestSelectBands:
    """Tests for select_bands()."""

    def test_selects_in_requested_order(self, normalized_image: xr.DataArray):
        result = select_bands(normalized_image, ["B8", "B2"])
        assert band_names(result) == ["B8", "B2"]
        np.testing.assert_array_equal(
            result.sel(band="B8").values, normalized_image.sel(band="B8").values
        )

    def test_values_unchanged(self, normalized_image: xr.DataArray):
        result = select_bands(normalized_image, REFLECTANCE_BANDS)
        xr.testing.assert_identical(result, normalized_image)

    def test_missing_band_raises(self, normalized_image: xr.DataArray):
        with pytest.raises(BandNotFoundError) as exc_info:
            select_bands(normalized_image, ["B4", "evi"])
        assert exc_info.value.missing == ["evi"]
        assert "B4" in exc_info.value.available
        assert "evi" in str(exc_info.value)

    def test_band_not_found_is_key_error(self, normalized_image: xr.DataArray):
        with pytest.raises(KeyError):
            select_bands(normalized_image, ["B5"])

    def test_selecting_twice_is_noop(self, normalized_image: xr.DataArray):
        once = select_bands(normalized_image, ["B4", "B3"])
        twice = select_bands(once, ["B4", "B3"])
        xr.testing.assert_identical(once, twice)

    def test_superset_then_subset_reproduces_subset(self, normalized_image: xr.DataArray):
        subset = select_bands(normalized_image, ["B4", "B8"])
        superset = select_bands(normalized_image, ["B2", "B4", "B8", "B12"])
        xr.testing.assert_identical(select_bands(superset, ["B4", "B8"]), subset)

    def test_aliases_accepted(self, normalized_image: xr.DataArray):
        result = select_bands(normalized_image, ["red", "nir"])
        assert band_names(result) == ["B4", "B8"]


class TestRequireBands:
    """Tests for require_bands()."""

    def test_passes_when_present(self, normalized_image: xr.DataArray):
        require_bands(normalized_image, ["B2", "B12"])

    def test_image_without_band_dim(self):
        with pytest.raises(ValueError, match="no 'band' dimension"):
            require_bands(xr.DataArray(np.zeros((2, 2)), dims=("y", "x")), ["B2"])
