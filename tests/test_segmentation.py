import cv2
import numpy as np
import pytest

from medvision.core.errors import (
    InvalidInputError,
    InvalidParameterError,
    MissingSeedsError,
    SegmentationFailedError,
    UnsupportedMethodError,
)
from medvision.image_processing.segmentation import Segmentation, prepare_image, segmentation_summary
from medvision.image_processing.segmentation_params import (
    AdaptiveParams,
    GraphCutParams,
    Method,
    RegionGrowingParams,
    ThresholdParams,
    WatershedParams,
)


@pytest.fixture
def segmentation():
    return Segmentation()


def test_threshold_selects_bright_disk(segmentation, disk_image):
    mask = segmentation.threshold(disk_image, ThresholdParams(threshold=128))

    assert mask.dtype == np.uint8
    assert mask.shape == disk_image.shape
    assert set(np.unique(mask)) == {0, 255}
    assert mask[50, 50] == 255
    assert mask[0, 0] == 0
    assert np.count_nonzero(mask) == np.count_nonzero(disk_image > 128)


def test_threshold_invert_is_complement(segmentation, disk_image):
    normal = segmentation.threshold(disk_image, ThresholdParams(threshold=128))
    inverted = segmentation.threshold(disk_image, ThresholdParams(threshold=128, invert_colors=True))

    assert np.array_equal(inverted, 255 - normal)


def test_threshold_uses_max_value_as_foreground(segmentation, disk_image):
    mask = segmentation.threshold(disk_image, ThresholdParams(threshold=128, max_value=100))

    assert set(np.unique(mask)) == {0, 100}


def test_otsu_splits_bimodal_image(segmentation, bimodal_image):
    mask = segmentation.otsu_threshold(bimodal_image)

    assert np.all(mask[:, :50] == 0)
    assert np.all(mask[:, 50:] == 255)


def test_otsu_splits_skewed_image(segmentation):
    image = np.full((100, 100), 30, dtype=np.uint8)
    image[:, 97:] = 220

    mask = segmentation.otsu_threshold(image)

    assert np.all(mask[:, :97] == 0)
    assert np.all(mask[:, 97:] == 255)


@pytest.mark.parametrize("run", [
    lambda seg, image: seg.threshold(image, ThresholdParams(threshold=100)),
    lambda seg, image: seg.otsu_threshold(image),
    lambda seg, image: seg.adaptive_threshold(image, AdaptiveParams(block_size=11, C=2), Method.ADAPTIVE_MEAN),
    lambda seg, image: seg.adaptive_threshold(image, AdaptiveParams(block_size=11, C=2)),
], ids=["threshold", "otsu", "adaptive-mean", "adaptive-gaussian"])
def test_thresholds_are_deterministic(segmentation, noise_image, run):
    first = run(segmentation, noise_image)
    second = run(segmentation, noise_image)

    assert first.dtype == second.dtype == np.uint8
    assert np.array_equal(first, second)


@pytest.mark.parametrize("method", [Method.ADAPTIVE_MEAN, Method.ADAPTIVE_GAUSSIAN])
def test_adaptive_threshold_on_flat_image(segmentation, method):
    flat = np.full((20, 20), 100, dtype=np.uint8)

    mask = segmentation.adaptive_threshold(flat, AdaptiveParams(block_size=5, C=2), method)
    inverted = segmentation.adaptive_threshold(flat, AdaptiveParams(block_size=5, C=2, invert_colors=True), method)

    assert np.all(mask == 255)
    assert np.all(inverted == 0)


@pytest.mark.parametrize("block_size", [4, 1, 0, -3])
def test_adaptive_threshold_rejects_bad_block_size(segmentation, disk_image, block_size):
    with pytest.raises(InvalidParameterError):
        segmentation.adaptive_threshold(disk_image, AdaptiveParams(block_size=block_size))


def test_segment_applies_post_processing(segmentation, disk_image):
    expected = segmentation.post_process(segmentation.otsu_threshold(disk_image))

    assert np.array_equal(segmentation.segment(disk_image, Method.OTSU), expected)
    assert np.array_equal(segmentation.segment(disk_image, "otsu"), expected)


def test_segment_uses_default_params(segmentation, disk_image):
    expected = segmentation.post_process(segmentation.threshold(disk_image, ThresholdParams()))

    assert np.array_equal(segmentation.segment(disk_image, Method.THRESHOLD), expected)


def test_segment_does_not_modify_input(segmentation, disk_image):
    before = disk_image.copy()

    for method in (Method.THRESHOLD, Method.OTSU, Method.ADAPTIVE_GAUSSIAN):
        segmentation.segment(disk_image, method)
    segmentation.segment(disk_image, Method.REGION_GROWING, RegionGrowingParams(seeds=[(50, 50)]))
    segmentation.segment(disk_image, Method.WATERSHED, WatershedParams())

    assert np.array_equal(disk_image, before)


def test_segment_rejects_graph_cut(segmentation, disk_image):
    with pytest.raises(UnsupportedMethodError):
        segmentation.segment(disk_image, Method.GRAPH_CUT, GraphCutParams())


def test_segment_rejects_unknown_method(segmentation, disk_image):
    with pytest.raises(UnsupportedMethodError):
        segmentation.segment(disk_image, "level-set")


@pytest.mark.parametrize("image", [None, np.zeros((0, 0), dtype=np.uint8), np.zeros((4, 4, 2), dtype=np.uint8)])
def test_segment_rejects_invalid_image(segmentation, image):
    with pytest.raises(InvalidInputError):
        segmentation.segment(image, Method.OTSU)


def test_segment_rejects_mismatched_params(segmentation, disk_image):
    with pytest.raises(InvalidParameterError):
        segmentation.segment(disk_image, Method.THRESHOLD, AdaptiveParams())


def test_segment_wraps_inner_failure(segmentation, disk_image):
    with pytest.raises(SegmentationFailedError) as excinfo:
        segmentation.segment(disk_image, Method.REGION_GROWING, RegionGrowingParams(seeds=[]))

    assert isinstance(excinfo.value.__cause__, MissingSeedsError)
    assert isinstance(excinfo.value.additional_info["original_error"], MissingSeedsError)


def test_color_input_matches_grayscale(segmentation, disk_image):
    color = cv2.cvtColor(disk_image, cv2.COLOR_GRAY2BGR)

    assert np.array_equal(segmentation.segment(color, Method.OTSU), segmentation.segment(disk_image, Method.OTSU))


def test_prepare_image_saturates_other_depths():
    wide = np.full((5, 5), 1000, dtype=np.uint16)
    negative = np.full((5, 5), -20.0, dtype=np.float32)
    single_channel = np.full((5, 5, 1), 7, dtype=np.uint8)

    assert prepare_image(wide).dtype == np.uint8
    assert np.all(prepare_image(wide) == 255)
    assert np.all(prepare_image(negative) == 0)
    assert prepare_image(single_channel).shape == (5, 5)


def test_post_process_removes_speckle_and_fills_pinhole(segmentation):
    speckle = np.zeros((30, 30), dtype=np.uint8)
    speckle[15, 15] = 255

    blob = np.zeros((30, 30), dtype=np.uint8)
    cv2.circle(blob, (15, 15), 8, 255, -1)
    blob[15, 15] = 0

    assert np.count_nonzero(segmentation.post_process(speckle)) == 0
    assert segmentation.post_process(blob)[15, 15] == 255


@pytest.mark.parametrize("density", [0.1, 0.5, 0.9])
def test_post_process_is_idempotent(segmentation, density):
    rng = np.random.default_rng(7)
    for _ in range(10):
        mask = np.where(rng.random((64, 64)) < density, 255, 0).astype(np.uint8)

        once = segmentation.post_process(mask)

        assert np.array_equal(segmentation.post_process(once), once)


def test_get_contours_counts_regions(segmentation, two_disks_image):
    mask = segmentation.threshold(two_disks_image, ThresholdParams(threshold=128))

    contours = segmentation.get_contours(mask)

    assert len(contours) == 2
    for contour in contours:
        assert all(len(point) == 2 for point in contour)


def test_get_contours_of_empty_mask(segmentation):
    assert segmentation.get_contours(np.zeros((10, 10), dtype=np.uint8)) == []


def test_segmentation_summary(segmentation, two_disks_image):
    mask = segmentation.threshold(two_disks_image, ThresholdParams(threshold=128))

    summary = segmentation_summary(mask)

    assert summary["regions"] == 2
    assert summary["shape"] == [100, 160]
    assert summary["foreground_pixels"] == np.count_nonzero(mask)
