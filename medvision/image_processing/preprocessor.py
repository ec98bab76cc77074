#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Module này cung cấp bộ tiền xử lý ảnh có trạng thái: giảm nhiễu, điều chỉnh
tương phản, xử lý histogram và tăng cường biên.

Mỗi thao tác biến đổi ảnh làm việc tại chỗ và trả về True nếu thành công,
False (kèm cảnh báo trong log) nếu chưa có ảnh hoặc tham số không hợp lệ.
Ảnh gốc được giữ lại để có thể khôi phục bằng reset().
"""

from enum import Enum
from typing import List, Optional, Tuple

import cv2
import numpy as np

from medvision.image_processing.display import to_uint8
from medvision.utils.logging import get_logger

logger = get_logger("Preprocessor")

HISTOGRAM_BINS = 256
HISTOGRAM_WIDTH = 512
HISTOGRAM_HEIGHT = 400

_DEPTH_NAMES = {
    np.dtype(np.uint8): "8U",
    np.dtype(np.int8): "8S",
    np.dtype(np.uint16): "16U",
    np.dtype(np.int16): "16S",
    np.dtype(np.int32): "32S",
    np.dtype(np.float32): "32F",
    np.dtype(np.float64): "64F",
}


class NoiseReductionMethod(Enum):
    """Các phương pháp giảm nhiễu"""
    GAUSSIAN = "gaussian"
    MEDIAN = "median"
    BILATERAL = "bilateral"
    NLM = "nlm"


class HistogramMethod(Enum):
    """Các phương pháp xử lý histogram"""
    EQUALIZATION = "equalization"
    CLAHE = "clahe"
    STRETCHING = "stretching"


def _is_valid_kernel(kernel_size) -> bool:
    return isinstance(kernel_size, (int, np.integer)) and kernel_size > 0 and kernel_size % 2 == 1


def _split_channels(image: np.ndarray) -> List[np.ndarray]:
    if image.ndim == 2:
        return [image]
    return list(cv2.split(image))


def _merge_channels(channels: List[np.ndarray]) -> np.ndarray:
    if len(channels) == 1:
        return channels[0]
    return cv2.merge(channels)


def _to_bgr_layout(image: np.ndarray) -> np.ndarray:
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


def compute_histogram(image: np.ndarray) -> List[np.ndarray]:
    """
    Tính histogram 256 bin cho từng kênh của ảnh 8-bit.

    Args:
        image: Ảnh grayscale hoặc màu

    Returns:
        List[np.ndarray]: Mỗi phần tử là mảng 256 số đếm (float32) của một kênh
    """
    image = to_uint8(image)
    return [
        cv2.calcHist([channel], [0], None, [HISTOGRAM_BINS], [0, 256]).ravel()
        for channel in _split_channels(image)
    ]


def render_histogram(histograms: List[np.ndarray]) -> np.ndarray:
    """
    Vẽ histogram thành ảnh BGR 512x400.

    Một kênh được vẽ màu trắng; ba kênh được vẽ lần lượt xanh dương, xanh lá, đỏ.
    """
    canvas = np.zeros((HISTOGRAM_HEIGHT, HISTOGRAM_WIDTH, 3), dtype=np.uint8)
    bin_width = int(round(HISTOGRAM_WIDTH / HISTOGRAM_BINS))

    if len(histograms) == 1:
        colors = [(255, 255, 255)]
    else:
        colors = [(255, 0, 0), (0, 255, 0), (0, 0, 255)]

    for hist, color in zip(histograms, colors):
        scaled = cv2.normalize(hist.astype(np.float32), None, 0, HISTOGRAM_HEIGHT, cv2.NORM_MINMAX).ravel()
        for i in range(1, HISTOGRAM_BINS):
            cv2.line(canvas,
                     (bin_width * (i - 1), HISTOGRAM_HEIGHT - int(round(scaled[i - 1]))),
                     (bin_width * i, HISTOGRAM_HEIGHT - int(round(scaled[i]))),
                     color, 2, cv2.LINE_8)

    return canvas


class ImagePreprocessor:
    """Lớp tiền xử lý ảnh y tế"""

    def __init__(self, image: Optional[np.ndarray] = None):
        self._image = None
        self._original = None
        if image is not None:
            self.set_image(image)

    # ---------- Thao tác cơ bản ----------

    def load_image(self, file_path: str) -> bool:
        """
        Tải ảnh từ file (giữ nguyên độ sâu bit và số kênh).

        Args:
            file_path: Đường dẫn file ảnh

        Returns:
            bool: True nếu tải thành công
        """
        image = cv2.imread(str(file_path), cv2.IMREAD_UNCHANGED)
        if image is None or image.size == 0:
            logger.warning(f"Không thể đọc ảnh: {file_path}")
            return False

        self.set_image(image)
        logger.info(f"Đã tải ảnh {file_path} ({self.get_image_type()}, {image.shape[1]}x{image.shape[0]})")
        return True

    def set_image(self, image: np.ndarray):
        """Đặt ảnh làm việc và lưu bản sao làm ảnh gốc"""
        self._image = image.copy()
        self._original = image.copy()

    def save_image(self, file_path: str) -> bool:
        """Lưu ảnh làm việc ra file"""
        if not self._check_loaded("save_image"):
            return False
        success = cv2.imwrite(str(file_path), self._image)
        if not success:
            logger.warning(f"Không thể ghi ảnh: {file_path}")
        return bool(success)

    def reset(self) -> bool:
        """Khôi phục ảnh làm việc về ảnh gốc"""
        if self._original is None:
            return False
        self._image = self._original.copy()
        return True

    def is_loaded(self) -> bool:
        return self._image is not None and self._image.size > 0

    def get_image(self) -> Optional[np.ndarray]:
        return self._image

    def get_original_image(self) -> Optional[np.ndarray]:
        return self._original

    # ---------- Thông tin ảnh ----------

    def get_image_size(self) -> Tuple[int, int]:
        """Kích thước ảnh dạng (width, height)"""
        if not self.is_loaded():
            return 0, 0
        return self._image.shape[1], self._image.shape[0]

    def get_channels(self) -> int:
        if not self.is_loaded():
            return 0
        return 1 if self._image.ndim == 2 else self._image.shape[2]

    def get_image_type(self) -> str:
        """Kiểu ảnh theo cách viết của OpenCV, ví dụ "8UC1" hoặc "32FC3" """
        if not self.is_loaded():
            return ""
        depth = _DEPTH_NAMES.get(self._image.dtype, "User")
        return f"{depth}C{self.get_channels()}"

    # ---------- Giảm nhiễu ----------

    def denoise(self, method: NoiseReductionMethod) -> bool:
        """
        Giảm nhiễu ảnh.

        Bilateral và NLM yêu cầu ảnh 8-bit, ảnh có độ sâu khác được chuyển về 8-bit trước.

        Args:
            method: Phương pháp giảm nhiễu

        Returns:
            bool: True nếu thành công
        """
        if not self._check_loaded("denoise"):
            return False

        method = NoiseReductionMethod(method)
        try:
            if method == NoiseReductionMethod.GAUSSIAN:
                return self.gaussian_blur()
            if method == NoiseReductionMethod.MEDIAN:
                return self.median_blur()

            source = to_uint8(self._image)
            if method == NoiseReductionMethod.BILATERAL:
                self._image = cv2.bilateralFilter(source, 9, 75, 75)
            elif source.ndim == 2:
                self._image = cv2.fastNlMeansDenoising(source)
            else:
                self._image = cv2.fastNlMeansDenoisingColored(source)
        except cv2.error as error:
            logger.error(f"Lỗi OpenCV khi giảm nhiễu ({method.value}): {error}")
            return False

        logger.debug(f"Đã giảm nhiễu bằng {method.value}")
        return True

    def gaussian_blur(self, kernel_size: int = 3, sigma: float = 1.0) -> bool:
        if not self._check_loaded("gaussian_blur") or not self._check_kernel(kernel_size):
            return False
        self._image = cv2.GaussianBlur(self._image, (kernel_size, kernel_size), sigma)
        return True

    def median_blur(self, kernel_size: int = 3) -> bool:
        if not self._check_loaded("median_blur") or not self._check_kernel(kernel_size):
            return False
        self._image = cv2.medianBlur(self._image, kernel_size)
        return True

    def bilateral_filter(self, diameter: int = 9, sigma_color: float = 75, sigma_space: float = 75) -> bool:
        if not self._check_loaded("bilateral_filter"):
            return False
        self._image = cv2.bilateralFilter(to_uint8(self._image), diameter, sigma_color, sigma_space)
        return True

    def non_local_means(self, h: float = 3.0, template_window_size: int = 7, search_window_size: int = 21) -> bool:
        """Giảm nhiễu Non-local Means (ảnh màu dùng biến thể cho ảnh màu)"""
        if not self._check_loaded("non_local_means"):
            return False
        source = to_uint8(self._image)
        if source.ndim == 2:
            self._image = cv2.fastNlMeansDenoising(source, None, h, template_window_size, search_window_size)
        else:
            self._image = cv2.fastNlMeansDenoisingColored(source, None, h, h, template_window_size,
                                                          search_window_size)
        return True

    # ---------- Tương phản và độ sáng ----------

    def normalize(self, min_value: float = 0, max_value: float = 255) -> bool:
        """Chuẩn hóa min-max về khoảng [min_value, max_value]"""
        if not self._check_loaded("normalize"):
            return False
        self._image = cv2.normalize(self._image, None, min_value, max_value, cv2.NORM_MINMAX)
        return True

    def adjust_contrast(self, alpha: float = 1.0, beta: float = 0) -> bool:
        """Biến đổi tuyến tính: pixel * alpha + beta (bão hòa theo kiểu ảnh)"""
        if not self._check_loaded("adjust_contrast"):
            return False
        self._image = cv2.addWeighted(self._image, alpha, self._image, 0, beta)
        return True

    def histogram_processing(self, method: HistogramMethod) -> bool:
        """
        Xử lý histogram.

        Args:
            method: EQUALIZATION (ảnh màu cân bằng kênh Y của YCrCb), CLAHE
                    hoặc STRETCHING (giãn tuyến tính từng kênh về [0, 255])

        Returns:
            bool: True nếu thành công
        """
        if not self._check_loaded("histogram_processing"):
            return False

        method = HistogramMethod(method)
        if method == HistogramMethod.CLAHE:
            return self.clahe()

        if method == HistogramMethod.EQUALIZATION:
            image = to_uint8(self._image)
            if image.ndim == 2:
                self._image = cv2.equalizeHist(image)
            else:
                y, cr, cb = cv2.split(cv2.cvtColor(_to_bgr_layout(image), cv2.COLOR_BGR2YCrCb))
                ycrcb = cv2.merge([cv2.equalizeHist(y), cr, cb])
                self._image = cv2.cvtColor(ycrcb, cv2.COLOR_YCrCb2BGR)
            return True

        channels = []
        for channel in _split_channels(self._image):
            min_value, max_value = float(channel.min()), float(channel.max())
            if max_value > min_value:
                scale = 255.0 / (max_value - min_value)
                stretched = (channel.astype(np.float64) - min_value) * scale
                channel = to_uint8(stretched) if self._image.dtype == np.uint8 else stretched.astype(channel.dtype)
            channels.append(channel)
        self._image = _merge_channels(channels)
        return True

    def clahe(self, clip_limit: float = 2.0, tile_grid_size: Tuple[int, int] = (8, 8)) -> bool:
        """CLAHE; ảnh màu được xử lý trên kênh L của không gian Lab"""
        if not self._check_loaded("clahe"):
            return False

        clahe = cv2.createCLAHE(clipLimit=clip_limit, tileGridSize=tuple(tile_grid_size))
        image = self._image if self._image.dtype in (np.uint8, np.uint16) else to_uint8(self._image)

        if image.ndim == 2:
            self._image = clahe.apply(image)
        else:
            lightness, a, b = cv2.split(cv2.cvtColor(_to_bgr_layout(to_uint8(image)), cv2.COLOR_BGR2Lab))
            lab = cv2.merge([clahe.apply(lightness), a, b])
            self._image = cv2.cvtColor(lab, cv2.COLOR_Lab2BGR)
        return True

    # ---------- Tăng cường biên ----------

    def sharpen(self, strength: float = 1.0) -> bool:
        """Làm sắc nét bằng nhân 3x3 (tâm 9, xung quanh -1) nhân với strength"""
        if not self._check_loaded("sharpen"):
            return False

        kernel = np.array([[-1, -1, -1],
                           [-1, 9, -1],
                           [-1, -1, -1]], dtype=np.float32) * strength

        channels = [cv2.filter2D(channel, -1, kernel) for channel in _split_channels(self._image)]
        self._image = _merge_channels(channels)
        return True

    def unsharp_mask(self, sigma: float = 1.0, strength: float = 1.5) -> bool:
        """Unsharp mask: ảnh * (1 + strength) - làm mờ Gauss * strength"""
        if not self._check_loaded("unsharp_mask"):
            return False

        channels = []
        for channel in _split_channels(self._image):
            blurred = cv2.GaussianBlur(channel, (0, 0), sigma)
            channels.append(cv2.addWeighted(channel, 1.0 + strength, blurred, -strength, 0))
        self._image = _merge_channels(channels)
        return True

    # ---------- Tiện ích ----------

    def compute_histogram(self) -> List[np.ndarray]:
        """Histogram 256 bin của từng kênh ảnh làm việc"""
        if not self._check_loaded("compute_histogram"):
            return []
        return compute_histogram(self._image)

    def get_histogram(self) -> Optional[np.ndarray]:
        """Ảnh histogram 512x400 của ảnh làm việc, None nếu chưa có ảnh"""
        if not self._check_loaded("get_histogram"):
            return None
        histograms = compute_histogram(self._image)
        return render_histogram(histograms[:3])

    def _check_loaded(self, operation: str) -> bool:
        if not self.is_loaded():
            logger.warning(f"Chưa có ảnh để thực hiện {operation}")
            return False
        return True

    def _check_kernel(self, kernel_size) -> bool:
        if not _is_valid_kernel(kernel_size):
            logger.warning(f"Kích thước nhân phải là số nguyên dương lẻ, nhận được {kernel_size}")
            return False
        return True
