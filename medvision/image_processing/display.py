#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Các hàm hỗ trợ hiển thị: chuyển đổi ảnh về dạng hiển thị được (8-bit BGR),
ghép ảnh trước/sau xử lý cạnh nhau và phủ bản đồ cạnh lên ảnh.
"""

from typing import Tuple

import cv2
import numpy as np

from medvision.utils.logging import get_logger

logger = get_logger("Display")

TITLE_BAND_HEIGHT = 50


def to_uint8(image: np.ndarray) -> np.ndarray:
    """
    Chuyển ảnh về kiểu uint8 với phép bão hòa (giá trị ngoài [0, 255] bị cắt).

    Mask kiểu bool được chuyển thành 0/255.
    """
    if image.dtype == np.uint8:
        return image
    if image.dtype == np.bool_:
        return image.astype(np.uint8) * 255
    if np.issubdtype(image.dtype, np.floating):
        image = np.rint(image)
    return np.clip(image, 0, 255).astype(np.uint8)


def to_bgr(image: np.ndarray) -> np.ndarray:
    """
    Tạo bản sao 8-bit 3 kênh (BGR) của ảnh.

    Args:
        image: Ảnh grayscale, BGR hoặc BGRA

    Returns:
        np.ndarray: Ảnh BGR uint8 (luôn là bản sao)
    """
    image = to_uint8(image)
    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image.copy()


def create_comparison_view(original: np.ndarray, processed: np.ndarray,
                           title1: str = "Original", title2: str = "Processed",
                           screen_size: Tuple[int, int] = (1280, 1024)) -> np.ndarray:
    """
    Ghép ảnh gốc và ảnh đã xử lý cạnh nhau, kèm tiêu đề.

    Cả hai ảnh được thu phóng cùng một tỉ lệ để vừa nửa chiều rộng màn hình
    (trừ 20 px lề) và chiều cao màn hình (trừ 100 px cho tiêu đề và lề).

    Args:
        original: Ảnh gốc
        processed: Ảnh đã xử lý
        title1: Tiêu đề ảnh gốc
        title2: Tiêu đề ảnh đã xử lý
        screen_size: Kích thước màn hình (width, height)

    Returns:
        np.ndarray: Ảnh BGR ghép
    """
    target_width = screen_size[0] // 2 - 20
    target_height = screen_size[1] - 100

    height, width = original.shape[:2]
    scale = min(target_width / width, target_height / height)

    left = to_bgr(cv2.resize(to_uint8(original), None, fx=scale, fy=scale))
    right = to_bgr(cv2.resize(to_uint8(processed), None, fx=scale, fy=scale))

    # Ảnh xử lý có thể khác kích thước ảnh gốc (ví dụ histogram); cắt cho vừa ô
    left = left[:target_height, :target_width]
    right = right[:target_height, :target_width]

    output = np.zeros((target_height + TITLE_BAND_HEIGHT, target_width * 2, 3), dtype=np.uint8)
    output[TITLE_BAND_HEIGHT:TITLE_BAND_HEIGHT + left.shape[0], :left.shape[1]] = left
    output[TITLE_BAND_HEIGHT:TITLE_BAND_HEIGHT + right.shape[0], target_width:target_width + right.shape[1]] = right

    cv2.putText(output, title1, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (255, 255, 255), 2)
    cv2.putText(output, title2, (target_width + 10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (255, 255, 255), 2)

    logger.debug(f"Đã tạo ảnh so sánh {output.shape[1]}x{output.shape[0]} (tỉ lệ {scale:.3f})")
    return output


def overlay_edges(image: np.ndarray, edges: np.ndarray, weight: float = 0.3) -> np.ndarray:
    """Phủ bản đồ cạnh lên ảnh với trọng số `weight`"""
    base = to_bgr(image)
    edge_view = to_bgr(edges)
    if edge_view.shape[:2] != base.shape[:2]:
        edge_view = cv2.resize(edge_view, (base.shape[1], base.shape[0]), interpolation=cv2.INTER_NEAREST)
    return cv2.addWeighted(base, 1.0 - weight, edge_view, weight, 0)
