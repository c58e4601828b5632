import numpy as np
import pytest

from kcf_tracking.features import (
    ColorClusterTable,
    FeatureExtractor,
    fhog,
    gray_features,
    lab_histogram,
)


def test_fhog_shape_drops_one_cell_ring():
    img = np.random.default_rng(0).integers(0, 256, (104, 96, 3), dtype=np.uint8)
    feats = fhog(img, 4)
    assert feats.shape == (24, 22, 31)
    assert feats.dtype == np.float32


def test_fhog_of_flat_image_is_zero():
    img = np.full((40, 40, 3), 200, np.uint8)
    assert not fhog(img, 4).any()


def test_fhog_values_are_bounded():
    img = np.random.default_rng(3).integers(0, 256, (64, 64), dtype=np.uint8)
    feats = fhog(img, 4)
    assert feats.min() >= 0.0
    # each orientation bin sums four truncated (<= 0.2) values scaled by 0.5
    assert feats[:, :, :27].max() <= 0.4 + 1e-6


def test_fhog_orientation_follows_edge_direction():
    vertical = np.zeros((40, 40), np.uint8)
    vertical[:, 20:] = 255
    horizontal = vertical.T.copy()

    v_bins = fhog(vertical, 4)[:, :, :18].sum(axis=(0, 1))
    h_bins = fhog(horizontal, 4)[:, :, :18].sum(axis=(0, 1))
    assert int(np.argmax(v_bins)) == 0
    assert int(np.argmax(h_bins)) in (4, 5)


def test_fhog_too_small_image_gives_empty_map():
    assert fhog(np.zeros((8, 8), np.uint8), 4).shape == (0, 0, 31)


def test_gray_features_are_centred():
    patch = np.zeros((6, 4, 3), np.uint8)
    patch[:3] = 255
    feats = gray_features(patch)
    assert feats.shape == (6, 4, 1)
    assert feats[0, 0, 0] == pytest.approx(0.5)
    assert feats[-1, 0, 0] == pytest.approx(-0.5)


def test_lab_histogram_cells_sum_to_one():
    table = ColorClusterTable.default()
    patch = np.random.default_rng(5).integers(0, 256, (40, 32, 3), dtype=np.uint8)
    hist = lab_histogram(patch, 4, table)
    assert hist.shape == (8, 6, table.n_clusters)
    np.testing.assert_allclose(hist.sum(axis=2), 1.0, rtol=1e-6)


def test_lab_histogram_assigns_pure_colour_to_its_cluster():
    table = ColorClusterTable.from_bgr([(0, 0, 0), (0, 0, 255), (255, 0, 0)])
    patch = np.zeros((24, 24, 3), np.uint8)
    patch[:, :] = (0, 0, 255)
    hist = lab_histogram(patch, 4, table)
    np.testing.assert_allclose(hist[:, :, 1], 1.0)
    assert not hist[:, :, [0, 2]].any()


def test_color_table_is_read_only_and_validated():
    table = ColorClusterTable.default()
    assert table.n_clusters == 15
    with pytest.raises(ValueError):
        table.centroids[0, 0] = 1.0
    with pytest.raises(ValueError):
        ColorClusterTable(np.zeros((4, 2)))


def test_extractor_modes():
    patch = np.random.default_rng(7).integers(0, 256, (48, 48, 3), dtype=np.uint8)
    assert FeatureExtractor(hog=True).extract(patch).shape == (10, 10, 31)
    assert FeatureExtractor(hog=True, lab=True).extract(patch).shape == (10, 10, 46)
    assert FeatureExtractor(hog=False, cell_size=1).extract(patch).shape == (48, 48, 1)
    # scale pyramid always uses FHOG
    assert FeatureExtractor(hog=False, cell_size=4).hog(patch).shape == (10, 10, 31)


def test_extractor_rejects_bad_input():
    with pytest.raises(ValueError):
        FeatureExtractor(hog=False, lab=True)
    with pytest.raises(ValueError):
        FeatureExtractor().extract(np.zeros((10, 10, 4), np.uint8))
