import cv2
import numpy as np
import pytest

from medvision.core.errors import MissingMarkersError, MissingSeedsError
from medvision.image_processing.segmentation import (
    DT_BACKGROUND_LABEL,
    DT_FOREGROUND_LABEL,
    MANUAL_BACKGROUND_LABEL,
    MANUAL_FOREGROUND_LABEL,
    Segmentation,
)
from medvision.image_processing.segmentation_params import Method, WatershedParams


@pytest.fixture
def segmentation():
    return Segmentation()


def disk_area(image):
    return np.count_nonzero(image == 200)


def test_distance_transform_mode_finds_disk(segmentation, disk_image):
    mask = segmentation.watershed(disk_image, WatershedParams(use_distance_transform=True))

    assert mask.dtype == np.uint8
    assert set(np.unique(mask)) == {0, 255}
    assert mask[50, 50] == 255
    assert mask[5, 5] == 0
    assert abs(np.count_nonzero(mask) - disk_area(disk_image)) < 0.3 * disk_area(disk_image)


def test_distance_transform_markers(segmentation, disk_image):
    markers, foreground_label = segmentation.build_markers(disk_image, WatershedParams())

    assert markers.dtype == np.int32
    assert foreground_label == DT_FOREGROUND_LABEL
    assert markers[50, 50] == DT_FOREGROUND_LABEL
    assert markers[0, 0] == DT_BACKGROUND_LABEL
    # Dải chưa biết quanh mép hình tròn
    assert markers[50, 70] == 0


def test_manual_mode_finds_disk(segmentation, disk_image):
    params = WatershedParams(use_distance_transform=False,
                             foreground_seeds=[(50, 50)], background_seeds=[(5, 5)])

    mask = segmentation.watershed(disk_image, params)

    assert mask[50, 50] == 255
    assert mask[95, 95] == 0
    assert abs(np.count_nonzero(mask) - disk_area(disk_image)) < 0.3 * disk_area(disk_image)


def test_manual_markers_paint_small_disks(segmentation, disk_image):
    params = WatershedParams(use_distance_transform=False,
                             foreground_seeds=[(50, 50)], background_seeds=[(5, 5)])

    markers, foreground_label = segmentation.build_markers(disk_image, params)

    assert foreground_label == MANUAL_FOREGROUND_LABEL
    assert markers[50, 50] == MANUAL_FOREGROUND_LABEL
    assert markers[50, 52] == MANUAL_FOREGROUND_LABEL
    assert markers[50, 53] == 0
    assert markers[5, 5] == MANUAL_BACKGROUND_LABEL
    assert np.count_nonzero(markers) == 2 * np.count_nonzero(markers == MANUAL_FOREGROUND_LABEL)


def test_foreground_wins_when_seed_in_both_lists(segmentation, disk_image):
    params = WatershedParams(use_distance_transform=False,
                             foreground_seeds=[(10, 10)], background_seeds=[(10, 10)])

    markers, _ = segmentation.build_markers(disk_image, params)

    assert markers[10, 10] == MANUAL_FOREGROUND_LABEL
    assert not np.any(markers == MANUAL_BACKGROUND_LABEL)


def test_manual_mode_requires_seeds(segmentation, disk_image):
    params = WatershedParams(use_distance_transform=False)

    with pytest.raises(MissingMarkersError):
        segmentation.watershed(disk_image, params)

    with pytest.raises(MissingSeedsError):
        segmentation.watershed(disk_image, params)


def test_out_of_bounds_seeds_are_skipped(segmentation, disk_image):
    only_outside = WatershedParams(use_distance_transform=False, foreground_seeds=[(500, 500)])
    mixed = WatershedParams(use_distance_transform=False,
                            foreground_seeds=[(50, 50), (-10, 40)], background_seeds=[(5, 5)])

    with pytest.raises(MissingMarkersError):
        segmentation.watershed(disk_image, only_outside)

    assert segmentation.watershed(disk_image, mixed)[50, 50] == 255


def test_segment_returns_watershed_result_directly(segmentation, disk_image):
    params = WatershedParams()

    assert np.array_equal(segmentation.segment(disk_image, Method.WATERSHED, params),
                          segmentation.watershed(disk_image, params))


def test_color_input(segmentation, disk_image):
    color = cv2.cvtColor(disk_image, cv2.COLOR_GRAY2BGR)
    before = color.copy()

    mask = segmentation.watershed(color, WatershedParams())

    assert mask.shape == disk_image.shape
    assert mask[50, 50] == 255
    assert np.array_equal(color, before)


def test_apply_watershed_keeps_markers(segmentation, disk_image):
    markers, _ = segmentation.build_markers(disk_image, WatershedParams())
    before = markers.copy()

    labels = segmentation.apply_watershed(cv2.cvtColor(disk_image, cv2.COLOR_GRAY2BGR), markers)

    assert np.array_equal(markers, before)
    assert np.any(labels == -1)
