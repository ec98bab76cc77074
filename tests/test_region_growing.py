import numpy as np
import pytest
from scipy import ndimage

from medvision.core.errors import InvalidParameterError, MissingSeedsError
from medvision.image_processing.segmentation import Segmentation
from medvision.image_processing.segmentation_params import RegionGrowingParams

EIGHT_CONNECTED = np.ones((3, 3), dtype=bool)


def grow(image, seeds, threshold=10.0, connectivity=8):
    return Segmentation().region_growing(
        image, RegionGrowingParams(seeds=seeds, threshold=threshold, connectivity=connectivity))


def test_grows_exactly_over_disk(disk_image):
    mask = grow(disk_image, [(50, 50)])

    assert np.array_equal(mask > 0, disk_image == 200)
    assert set(np.unique(mask)) == {0, 255}


def test_seed_in_background_excludes_disk(disk_image):
    mask = grow(disk_image, [(0, 0)])

    assert np.array_equal(mask > 0, disk_image == 50)


def test_region_is_seed_component(two_disks_image):
    labels, _ = ndimage.label(two_disks_image == 200, structure=EIGHT_CONNECTED)

    mask = grow(two_disks_image, [(40, 50)])

    assert np.array_equal(mask > 0, labels == labels[50, 40])
    assert mask[50, 120] == 0


def test_multiple_seeds_union(two_disks_image):
    first = grow(two_disks_image, [(40, 50)])
    second = grow(two_disks_image, [(120, 50)])

    both = grow(two_disks_image, [(40, 50), (120, 50), (40, 50)])

    assert np.array_equal(both, np.maximum(first, second))


def test_compares_against_current_pixel_not_seed():
    # Dốc tuyến tính: hai pixel kề nhau chỉ chênh 2 nhưng hai đầu chênh 198
    ramp = np.tile((np.arange(100) * 2).astype(np.uint8), (10, 1))

    narrow = grow(ramp, [(0, 0)], threshold=1)
    wide = grow(ramp, [(0, 0)], threshold=2)

    assert np.count_nonzero(narrow) == 10
    assert np.all(narrow[:, 0] == 255)
    assert np.all(wide == 255)


def test_larger_threshold_never_shrinks_region(noise_image):
    previous = None
    for threshold in (0, 5, 20, 60):
        mask = grow(noise_image, [(60, 60)], threshold=threshold)
        assert mask[60, 60] == 255
        if previous is not None:
            assert np.all(mask[previous > 0] == 255)
        previous = mask


def test_grown_region_is_connected(noise_image):
    mask = grow(noise_image, [(60, 60)], threshold=40)

    _, count = ndimage.label(mask > 0, structure=EIGHT_CONNECTED)

    assert count == 1


def test_four_connectivity_blocks_diagonal_steps():
    diagonal = (np.eye(10) * 200).astype(np.uint8)

    eight = grow(diagonal, [(0, 0)], connectivity=8)
    four = grow(diagonal, [(0, 0)], connectivity=4)

    assert np.array_equal(eight > 0, diagonal == 200)
    assert np.count_nonzero(four) == 1


def test_does_not_mutate_seed_list(disk_image):
    seeds = [(50, 50)]

    grow(disk_image, seeds)

    assert seeds == [(50, 50)]


def test_requires_seeds(disk_image):
    with pytest.raises(MissingSeedsError):
        grow(disk_image, [])


@pytest.mark.parametrize("seed", [(-1, 0), (100, 10), (10, 100)])
def test_rejects_seed_outside_image(disk_image, seed):
    with pytest.raises(InvalidParameterError):
        grow(disk_image, [seed])


def test_rejects_bad_connectivity(disk_image):
    with pytest.raises(InvalidParameterError):
        grow(disk_image, [(50, 50)], connectivity=6)


def test_rejects_negative_threshold(disk_image):
    with pytest.raises(InvalidParameterError):
        grow(disk_image, [(50, 50)], threshold=-1)
