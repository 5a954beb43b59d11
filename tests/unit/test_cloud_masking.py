"""Unit tests for cloud masking module."""

from datetime import datetime, timezone

import numpy as np
import pytest
import xarray as xr
from pystac import Asset, Item

from darkwoods_composite.bands import BandNotFoundError, band_names
from darkwoods_composite.sentinel2.cloud_masking import (
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


class TestConstants:
    """Tests for cloud masking constants."""

    def test_clear_threshold(self):
        assert CLEAR_THRESHOLD == 0.6

    def test_scl_asset_id(self):
        """SCL asset ID should be 'scl'."""
        assert SCL_ASSET_ID == "scl"

    def test_scl_mask_values_contains_expected_classes(self):
        """SCL mask values should include clouds, shadows, cirrus, snow."""
        assert SCL_MASK_VALUES == {3, 8, 9, 10, 11}

    def test_scl_mask_values_excludes_vegetation_and_water(self):
        assert 4 not in SCL_MASK_VALUES
        assert 6 not in SCL_MASK_VALUES


class TestClearMask:
    """Tests for clear_mask()."""

    def test_threshold_inclusive(self):
        score = xr.DataArray(np.array([0.59, 0.6, 0.61, np.nan]), dims=("x",))
        np.testing.assert_array_equal(clear_mask(score).values, [False, True, True, False])

    def test_custom_threshold(self):
        score = xr.DataArray(np.array([0.3, 0.5]), dims=("x",))
        np.testing.assert_array_equal(clear_mask(score, 0.4).values, [False, True])


class TestMaskClouds:
    """Tests for mask_clouds()."""

    @pytest.fixture
    def stack(self, stack_factory, uniform_raw) -> xr.DataArray:
        scores = np.array(
            [
                [[0.9, 0.2], [0.6, 0.59]],
                [[0.1, 0.7], [np.nan, 1.0]],
            ]
        )
        return stack_factory(uniform_raw(2, 2, 2) / 10000, scores)

    def test_masks_all_bands_below_threshold(self, stack):
        result = mask_clouds(stack)
        pixel = result.isel(time=0, y=0, x=1)
        assert pixel.isnull().all()

    def test_passes_clear_pixels_unchanged(self, stack):
        result = mask_clouds(stack)
        xr.testing.assert_equal(result.isel(time=0, y=0, x=0), stack.isel(time=0, y=0, x=0))
        xr.testing.assert_equal(result.isel(time=0, y=1, x=0), stack.isel(time=0, y=1, x=0))

    def test_score_band_is_masked_too(self, stack):
        score = mask_clouds(stack).sel(band="cs_cdf")
        assert np.isnan(score.isel(time=0, y=1, x=1))
        assert np.isnan(score.isel(time=1, y=0, x=0))

    def test_undefined_score_is_masked(self, stack):
        assert mask_clouds(stack).isel(time=1, y=1, x=0).isnull().all()

    def test_idempotent(self, stack):
        once = mask_clouds(stack)
        twice = mask_clouds(once)
        xr.testing.assert_identical(once, twice)

    def test_preserves_dims(self, stack):
        assert mask_clouds(stack).dims == stack.dims

    def test_single_image(self, stack):
        image = stack.isel(time=1, drop=True)
        result = mask_clouds(image)
        assert result.dims == ("band", "y", "x")
        assert result.isel(y=0, x=0).isnull().all()
        assert result.isel(y=0, x=1).notnull().all()

    def test_missing_score_band(self, normalized_image):
        with pytest.raises(BandNotFoundError):
            mask_clouds(normalized_image)


class TestClearnessFromScl:
    """Tests for clearness_from_scl()."""

    def test_scores(self):
        scl = xr.DataArray(
            np.array([[[4, 9, 0], [3, 6, np.nan]]], dtype="float64"),
            dims=("time", "y", "x"),
        )
        score = clearness_from_scl(scl)
        expected = np.array([[[1.0, 0.0, np.nan], [0.0, 1.0, np.nan]]])
        np.testing.assert_array_equal(score.values, expected)

    def test_scores_pass_default_threshold(self):
        scl = xr.DataArray(np.array([4.0, 8.0]), dims=("x",))
        np.testing.assert_array_equal(
            clear_mask(clearness_from_scl(scl)).values, [True, False]
        )

    def test_custom_mask_values(self):
        scl = xr.DataArray(np.array([11.0, 6.0]), dims=("x",))
        score = clearness_from_scl(scl, mask_values={6})
        np.testing.assert_array_equal(score.values, [1.0, 0.0])


class TestAttachClearness:
    """Tests for attach_clearness()."""

    def test_joins_score_as_band(self, stack_factory, uniform_raw):
        full = stack_factory(uniform_raw(2, 2, 2), np.full((2, 2, 2), 0.5))
        raw = full.drop_sel(band="cs_cdf")
        score = xr.DataArray(
            np.array([np.full((2, 2), 0.8), np.full((2, 2), 0.3)]),
            dims=("time", "y", "x"),
            coords={"y": full.y, "x": full.x},
        )
        joined = attach_clearness(raw, score)
        assert band_names(joined) == ["B2", "B3", "B4", "B8", "B12", "cs_cdf"]
        assert joined.dims == ("time", "band", "y", "x")
        np.testing.assert_array_equal(joined.sel(band="cs_cdf").isel(time=1).values, 0.3)

    def test_replaces_existing_score(self, stack_factory, uniform_raw):
        full = stack_factory(uniform_raw(1, 2, 2), np.full((1, 2, 2), 0.5))
        score = xr.DataArray(np.full((1, 2, 2), 0.9), dims=("time", "y", "x"),
                             coords={"y": full.y, "x": full.x})
        joined = attach_clearness(full, score)
        assert band_names(joined).count("cs_cdf") == 1
        np.testing.assert_array_equal(joined.sel(band="cs_cdf").values, 0.9)

    def test_time_mismatch_raises(self, stack_factory, uniform_raw):
        full = stack_factory(uniform_raw(2, 2, 2), np.ones((2, 2, 2)))
        score = xr.DataArray(np.ones((3, 2, 2)), dims=("time", "y", "x"))
        with pytest.raises(ValueError, match="Clearness score has 3 images"):
            attach_clearness(full, score)


def _item_with(*asset_ids):
    item = Item(
        id="S2B_11UNP_20240905",
        geometry={"type": "Point", "coordinates": [-116.9, 49.2]},
        bbox=[-116.9, 49.2, -116.9, 49.2],
        datetime=datetime(2024, 9, 5, 19, 0, tzinfo=timezone.utc),
        properties={},
    )
    for asset_id in asset_ids:
        item.add_asset(asset_id, Asset(href=f"s3://bucket/{asset_id}.tif"))
    return item


class TestStacking:
    """Tests for stack_scl() and stack_clearness() stackstac arguments."""

    BOUNDS = (-116.9, 49.2, -116.8, 49.25)

    def test_scl_without_chunks(self, fake_stackstac):
        scl = stack_scl([_item_with("scl")], self.BOUNDS, 3005, chunks=None)
        assert scl.dims == ("time", "y", "x")
        assert "chunksize" not in fake_stackstac[0]
        assert fake_stackstac[0]["xy_coords"] == "center"

    def test_score_asset_stacked_directly(self, fake_stackstac):
        score = stack_clearness([_item_with("cs_cdf", "scl")], self.BOUNDS, 3005, chunks=None)
        assert score.name == "cs_cdf"
        assert len(fake_stackstac) == 1
        assert "chunksize" not in fake_stackstac[0]
        assert fake_stackstac[0]["xy_coords"] == "center"

    def test_scl_fallback(self, fake_stackstac):
        score = stack_clearness([_item_with("scl")], self.BOUNDS, 3005, chunks=512)
        assert fake_stackstac[0]["chunksize"] == 512
        assert fake_stackstac[0]["xy_coords"] == "center"
        # the recorded tiles hold a non-cloud class everywhere
        assert (score == 1.0).all()

    def test_missing_scl(self):
        with pytest.raises(ValueError, match="missing scl"):
            stack_scl([_item_with("red")], self.BOUNDS, 3005)
