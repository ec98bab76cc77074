import cv2
import numpy as np
import pytest

from medvision.image_processing.preprocessor import (
    HistogramMethod,
    ImagePreprocessor,
    NoiseReductionMethod,
    compute_histogram,
)


def test_operations_fail_without_image():
    preprocessor = ImagePreprocessor()

    assert not preprocessor.is_loaded()
    assert preprocessor.gaussian_blur() is False
    assert preprocessor.denoise(NoiseReductionMethod.MEDIAN) is False
    assert preprocessor.clahe() is False
    assert preprocessor.get_histogram() is None
    assert preprocessor.get_image_size() == (0, 0)


def test_load_and_save(tmp_path, disk_image):
    path = tmp_path / "disk.png"
    cv2.imwrite(str(path), disk_image)
    preprocessor = ImagePreprocessor()

    assert preprocessor.load_image(str(path))
    assert preprocessor.save_image(str(tmp_path / "copy.png"))
    assert preprocessor.load_image(str(tmp_path / "missing.png")) is False
    assert np.array_equal(cv2.imread(str(tmp_path / "copy.png"), cv2.IMREAD_UNCHANGED), disk_image)


@pytest.mark.parametrize("image, expected", [
    (np.zeros((4, 4), dtype=np.uint8), "8UC1"),
    (np.zeros((4, 4, 3), dtype=np.uint8), "8UC3"),
    (np.zeros((4, 4), dtype=np.uint16), "16UC1"),
    (np.zeros((4, 4, 3), dtype=np.float32), "32FC3"),
])
def test_image_type(image, expected):
    assert ImagePreprocessor(image).get_image_type() == expected


def test_image_size_is_width_height():
    preprocessor = ImagePreprocessor(np.zeros((30, 40), dtype=np.uint8))

    assert preprocessor.get_image_size() == (40, 30)
    assert preprocessor.get_channels() == 1


def test_reset_restores_original(disk_image):
    preprocessor = ImagePreprocessor(disk_image)

    preprocessor.gaussian_blur(5, 2.0)
    assert not np.array_equal(preprocessor.get_image(), disk_image)

    assert preprocessor.reset()
    assert np.array_equal(preprocessor.get_image(), disk_image)


@pytest.mark.parametrize("kernel_size", [4, 0, -3])
def test_rejects_bad_kernel(disk_image, kernel_size):
    preprocessor = ImagePreprocessor(disk_image)

    assert preprocessor.gaussian_blur(kernel_size) is False
    assert preprocessor.median_blur(kernel_size) is False
    assert np.array_equal(preprocessor.get_image(), disk_image)


@pytest.mark.parametrize("method", list(NoiseReductionMethod))
def test_denoise_methods(noise_image, method):
    preprocessor = ImagePreprocessor(noise_image)

    assert preprocessor.denoise(method)
    assert preprocessor.get_image().shape == noise_image.shape
    assert preprocessor.get_image().dtype == np.uint8
    if method != NoiseReductionMethod.NLM:
        assert preprocessor.get_image().std() < noise_image.std()


def test_bilateral_converts_wide_images():
    wide = np.full((20, 20), 1000, dtype=np.uint16)
    preprocessor = ImagePreprocessor(wide)

    assert preprocessor.denoise(NoiseReductionMethod.BILATERAL)
    assert preprocessor.get_image_type() == "8UC1"


def test_normalize_spans_range():
    image = np.tile(np.arange(50, 100, dtype=np.uint8), (5, 1))
    preprocessor = ImagePreprocessor(image)

    assert preprocessor.normalize()
    assert preprocessor.get_image().min() == 0
    assert preprocessor.get_image().max() == 255


def test_adjust_contrast_saturates():
    preprocessor = ImagePreprocessor(np.array([[100, 200]], dtype=np.uint8))

    assert preprocessor.adjust_contrast(alpha=2.0, beta=10)
    assert preprocessor.get_image().tolist() == [[210, 255]]


def test_histogram_stretching():
    image = np.tile(np.arange(50, 101, dtype=np.uint8), (3, 1))
    color = np.dstack([image, image, np.full_like(image, 80)])
    preprocessor = ImagePreprocessor(color)

    assert preprocessor.histogram_processing(HistogramMethod.STRETCHING)
    result = preprocessor.get_image()
    assert result[:, :, 0].min() == 0
    assert result[:, :, 0].max() == 255
    # Kênh phẳng giữ nguyên
    assert np.all(result[:, :, 2] == 80)


def test_equalization_keeps_color_layout(disk_image):
    color = cv2.cvtColor(disk_image, cv2.COLOR_GRAY2BGR)
    preprocessor = ImagePreprocessor(color)

    assert preprocessor.histogram_processing(HistogramMethod.EQUALIZATION)
    assert preprocessor.get_image().shape == color.shape


@pytest.mark.parametrize("channels", [1, 3])
def test_clahe(noise_image, channels):
    image = noise_image if channels == 1 else cv2.cvtColor(noise_image, cv2.COLOR_GRAY2BGR)
    preprocessor = ImagePreprocessor(image)

    assert preprocessor.histogram_processing(HistogramMethod.CLAHE)
    assert preprocessor.get_image().shape == image.shape
    assert preprocessor.get_image().dtype == np.uint8


def test_sharpen_and_unsharp_keep_flat_image():
    flat = np.full((10, 10, 3), 120, dtype=np.uint8)

    sharpened = ImagePreprocessor(flat)
    unsharp = ImagePreprocessor(flat)

    assert sharpened.sharpen(1.0)
    assert unsharp.unsharp_mask(1.0, 1.5)
    assert np.all(sharpened.get_image() == 120)
    assert np.all(unsharp.get_image() == 120)


def test_sharpen_increases_edge_contrast(bimodal_image):
    preprocessor = ImagePreprocessor(bimodal_image)

    preprocessor.sharpen(1.0)

    # Hai bên ranh giới bị đẩy ra hai đầu thang xám
    assert preprocessor.get_image()[50, 49] == 0
    assert preprocessor.get_image()[50, 50] == 255
    assert preprocessor.get_image()[50, 10] == 30


def test_compute_histogram_counts_pixels(disk_image):
    gray = compute_histogram(disk_image)
    color = compute_histogram(cv2.cvtColor(disk_image, cv2.COLOR_GRAY2BGR))

    assert len(gray) == 1
    assert len(color) == 3
    assert gray[0].sum() == disk_image.size
    assert gray[0][200] == np.count_nonzero(disk_image == 200)


def test_histogram_image(disk_image):
    histogram = ImagePreprocessor(disk_image).get_histogram()

    assert histogram.shape == (400, 512, 3)
    assert histogram.any()
