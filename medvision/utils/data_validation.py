#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Module data_validation.py
-------------------------
Module này cung cấp các hàm xác thực ảnh và mask trước khi đưa vào
các bộ xử lý của MedVision.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List

import numpy as np


class DataType(Enum):
    """Các kiểu dữ liệu chính trong hệ thống"""
    IMAGE = "image"
    MASK = "mask"
    MARKERS = "markers"


@dataclass
class ValidationResult:
    """Kết quả xác thực dữ liệu"""
    valid: bool
    message: str
    data_type: DataType
    warnings: List[str] = field(default_factory=list)

    def __bool__(self):
        return self.valid


def get_channels(image: np.ndarray) -> int:
    """Số kênh của ảnh (1 cho ảnh 2D)"""
    return 1 if image.ndim == 2 else image.shape[2]


def validate_image(image) -> ValidationResult:
    """
    Xác thực ảnh đầu vào.

    Args:
        image: Mảng NumPy 2D (grayscale) hoặc 3D (H, W, C) với C thuộc {1, 3, 4}

    Returns:
        ValidationResult: Kết quả xác thực
    """
    if image is None:
        return ValidationResult(False, "Ảnh đầu vào là None", DataType.IMAGE)

    if not isinstance(image, np.ndarray):
        return ValidationResult(
            False,
            f"Ảnh đầu vào không phải là mảng NumPy ({type(image).__name__})",
            DataType.IMAGE
        )

    if image.size == 0:
        return ValidationResult(False, "Ảnh đầu vào rỗng", DataType.IMAGE)

    if image.ndim not in (2, 3):
        return ValidationResult(
            False,
            f"Ảnh phải là mảng 2D hoặc 3D, nhận được mảng {image.ndim}D",
            DataType.IMAGE
        )

    if image.ndim == 3 and image.shape[2] not in (1, 3, 4):
        return ValidationResult(
            False,
            f"Số kênh không được hỗ trợ: {image.shape[2]}",
            DataType.IMAGE
        )

    warnings = []
    if image.dtype != np.uint8:
        warnings.append(f"Ảnh có kiểu {image.dtype}, sẽ được chuyển về 8-bit")

    return ValidationResult(True, "Ảnh hợp lệ", DataType.IMAGE, warnings)


def validate_mask(mask, image: np.ndarray = None) -> ValidationResult:
    """
    Xác thực mask phân vùng.

    Args:
        mask: Mảng NumPy 2D chứa giá trị 0 hoặc 255
        image: Ảnh tương ứng (để kiểm tra kích thước)

    Returns:
        ValidationResult: Kết quả xác thực
    """
    if not isinstance(mask, np.ndarray) or mask.size == 0:
        return ValidationResult(False, "Mask rỗng hoặc không phải mảng NumPy", DataType.MASK)

    if mask.ndim != 2:
        return ValidationResult(
            False,
            f"Mask phải là mảng 2D, nhận được mảng {mask.ndim}D",
            DataType.MASK
        )

    if image is not None and mask.shape != image.shape[:2]:
        return ValidationResult(
            False,
            f"Kích thước mask {mask.shape} không khớp với ảnh {image.shape[:2]}",
            DataType.MASK
        )

    warnings = []
    unique_values = np.unique(mask)
    if not np.all(np.isin(unique_values, [0, 255])):
        warnings.append(f"Mask nên chỉ chứa giá trị 0 và 255, nhận được {unique_values[:10]}")

    return ValidationResult(True, "Mask hợp lệ", DataType.MASK, warnings)
