#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Module này tải và lưu ảnh y tế: ảnh thông thường (PNG, JPEG, TIFF, ...)
được đọc bằng OpenCV, file DICOM được đọc bằng pydicom và chuyển về ảnh
hiển thị 8-bit.
"""

import os
from typing import Any, Dict, List, Sequence

import cv2
import numpy as np
import pydicom
from pydicom.multival import MultiValue

from medvision.core.errors import ImageLoadError
from medvision.utils.logging import get_logger

logger = get_logger("ImageLoader")

DEFAULT_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.bmp', '.tif', '.tiff', '.dcm')


def _first_value(value) -> float:
    """WindowCenter/WindowWidth có thể là giá trị đơn hoặc danh sách"""
    if isinstance(value, (MultiValue, list, tuple)):
        value = value[0]
    return float(value)


def window_image(data: np.ndarray, center: float = None, width: float = None) -> np.ndarray:
    """
    Chuyển dữ liệu cường độ về ảnh 8-bit bằng cửa sổ (window center/width).

    Không có cửa sổ thì dùng chuẩn hóa min-max.

    Args:
        data: Mảng cường độ (float)
        center: Tâm cửa sổ
        width: Độ rộng cửa sổ

    Returns:
        np.ndarray: Ảnh uint8
    """
    if center is not None and width is not None and width > 0:
        low = center - width / 2.0
        high = center + width / 2.0
    else:
        low, high = float(data.min()), float(data.max())

    if high <= low:
        return np.zeros(data.shape, dtype=np.uint8)

    scaled = (np.clip(data, low, high) - low) / (high - low) * 255.0
    return np.rint(scaled).astype(np.uint8)


class ImageLoader:
    """Lớp tải ảnh y tế từ file"""

    def __init__(self):
        self.metadata: Dict[str, Any] = {}

    def load_image(self, file_path: str) -> np.ndarray:
        """
        Tải ảnh từ file.

        Args:
            file_path: Đường dẫn file ảnh hoặc DICOM (.dcm)

        Returns:
            np.ndarray: Mảng ảnh (DICOM được trả về dạng grayscale 8-bit)

        Raises:
            FileNotFoundError: File không tồn tại
            ImageLoadError: Không đọc được file
        """
        file_path = str(file_path)
        if not os.path.isfile(file_path):
            raise FileNotFoundError(f"Không tìm thấy file ảnh: {file_path}")

        if file_path.lower().endswith('.dcm'):
            return self.load_dicom(file_path)

        image = cv2.imread(file_path, cv2.IMREAD_UNCHANGED)
        if image is None or image.size == 0:
            raise ImageLoadError(f"Không thể đọc ảnh: {file_path}")

        self.metadata = {
            'file_path': file_path,
            'rows': int(image.shape[0]),
            'columns': int(image.shape[1]),
            'channels': 1 if image.ndim == 2 else int(image.shape[2]),
            'dtype': str(image.dtype),
        }
        logger.info(f"Đã tải ảnh {file_path} ({image.shape[1]}x{image.shape[0]}, {image.dtype})")
        return image

    def load_dicom(self, file_path: str) -> np.ndarray:
        """
        Tải một file DICOM đơn lẻ và chuyển về ảnh hiển thị 8-bit.

        Áp dụng RescaleSlope/RescaleIntercept, cửa sổ WindowCenter/WindowWidth
        (nếu có) và đảo ngược với ảnh MONOCHROME1.
        """
        try:
            ds = pydicom.dcmread(file_path)
            data = ds.pixel_array.astype(np.float32)
        except Exception as error:
            logger.error(f"Lỗi khi đọc DICOM {file_path}: {str(error)}")
            raise ImageLoadError(f"Không thể đọc DICOM: {file_path}",
                                 additional_info={'original_error': error}) from error

        if data.ndim == 3 and getattr(ds, 'SamplesPerPixel', 1) == 1:
            # Ảnh nhiều khung: chỉ dùng khung đầu tiên
            data = data[0]

        slope = float(getattr(ds, 'RescaleSlope', 1) or 1)
        intercept = float(getattr(ds, 'RescaleIntercept', 0) or 0)
        data = data * slope + intercept

        center = _first_value(ds.WindowCenter) if 'WindowCenter' in ds else None
        width = _first_value(ds.WindowWidth) if 'WindowWidth' in ds else None
        image = window_image(data, center, width)

        if getattr(ds, 'PhotometricInterpretation', '') == 'MONOCHROME1':
            image = 255 - image

        self.metadata = {
            'file_path': file_path,
            'patient_id': getattr(ds, 'PatientID', None),
            'study_date': getattr(ds, 'StudyDate', None),
            'modality': getattr(ds, 'Modality', None),
            'rows': getattr(ds, 'Rows', image.shape[0]),
            'columns': getattr(ds, 'Columns', image.shape[1]),
            'pixel_spacing': list(getattr(ds, 'PixelSpacing', [1, 1])),
            'window_center': center,
            'window_width': width,
        }
        logger.info(f"Đã tải DICOM {file_path} ({self.metadata['modality']}, "
                    f"{image.shape[1]}x{image.shape[0]})")
        return image

    def save_image(self, file_path: str, image: np.ndarray) -> bool:
        """
        Lưu ảnh ra file, tạo thư mục cha nếu cần.

        Raises:
            ImageLoadError: Không ghi được file
        """
        file_path = str(file_path)
        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        try:
            success = cv2.imwrite(file_path, image)
        except cv2.error as error:
            raise ImageLoadError(f"Không thể ghi ảnh {file_path}: {error}") from error

        if not success:
            raise ImageLoadError(f"Không thể ghi ảnh: {file_path}")

        logger.info(f"Đã lưu ảnh: {file_path}")
        return True

    def list_images(self, folder: str, limit: int = 100,
                    extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> List[str]:
        """
        Liệt kê các file ảnh trong thư mục (không đệ quy), sắp xếp theo tên.

        Args:
            folder: Thư mục cần liệt kê
            limit: Số file tối đa
            extensions: Các phần mở rộng được chấp nhận

        Returns:
            List[str]: Danh sách đường dẫn
        """
        if not os.path.isdir(folder):
            logger.warning(f"Thư mục không tồn tại: {folder}")
            return []

        extensions = tuple(ext.lower() for ext in extensions)
        paths = sorted(
            os.path.join(folder, name) for name in os.listdir(folder)
            if name.lower().endswith(extensions) and os.path.isfile(os.path.join(folder, name))
        )
        return paths[:limit]
