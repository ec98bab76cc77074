#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Module này cung cấp các chức năng phát hiện đặc trưng trên ảnh y tế:
phát hiện biên (Canny, Sobel, Laplacian), phát hiện điểm đặc trưng
(SIFT, ORB, FAST) và đặc trưng kết cấu dựa trên ma trận đồng xuất hiện
mức xám (GLCM).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Tuple

import cv2
import numpy as np
from skimage.feature import graycomatrix, graycoprops

from medvision.core.errors import FeatureDetectionError, InvalidParameterError, handle_vision_error
from medvision.image_processing.display import to_bgr
from medvision.image_processing.segmentation import prepare_image, validate_input
from medvision.utils.logging import get_logger

logger = get_logger("FeatureDetector")

TEXTURE_PROPERTIES = ("contrast", "correlation", "energy", "homogeneity")
DEFAULT_GLCM_ANGLES = (0.0, np.pi / 4, np.pi / 2, 3 * np.pi / 4)


class EdgeDetector(Enum):
    CANNY = "canny"
    SOBEL = "sobel"
    LAPLACIAN = "laplacian"


class KeypointDetector(Enum):
    SIFT = "sift"
    ORB = "orb"
    FAST = "fast"


@dataclass
class EdgeParams:
    threshold1: float = 100.0
    threshold2: float = 200.0
    aperture_size: int = 3
    l2_gradient: bool = False


@dataclass
class KeypointParams:
    max_keypoints: int = 1000
    scale_factor: float = 1.2      # ORB
    n_levels: int = 8              # ORB
    edge_threshold: int = 31       # ORB
    fast_threshold: int = 20       # FAST


class FeatureDetector:
    """Lớp phát hiện đặc trưng trên ảnh"""

    @handle_vision_error("phát hiện biên", wrap_as=FeatureDetectionError)
    def detect_edges(self, image: np.ndarray, method: EdgeDetector = EdgeDetector.CANNY,
                     params: EdgeParams = None) -> np.ndarray:
        """
        Phát hiện biên.

        Args:
            image: Ảnh đầu vào
            method: Bộ phát hiện biên
            params: Tham số biên

        Returns:
            np.ndarray: Bản đồ biên uint8 một kênh
        """
        validate_input(image)
        params = params or EdgeParams()
        method = EdgeDetector(method)
        processed = prepare_image(image)

        if method == EdgeDetector.CANNY:
            edges = cv2.Canny(processed, params.threshold1, params.threshold2,
                              apertureSize=params.aperture_size, L2gradient=params.l2_gradient)
        elif method == EdgeDetector.SOBEL:
            grad_x = cv2.convertScaleAbs(cv2.Sobel(processed, cv2.CV_16S, 1, 0, ksize=params.aperture_size))
            grad_y = cv2.convertScaleAbs(cv2.Sobel(processed, cv2.CV_16S, 0, 1, ksize=params.aperture_size))
            edges = cv2.addWeighted(grad_x, 0.5, grad_y, 0.5, 0)
        else:
            laplacian = cv2.Laplacian(processed, cv2.CV_16S, ksize=params.aperture_size)
            edges = cv2.convertScaleAbs(laplacian)

        logger.info(f"Đã phát hiện biên bằng {method.value}: {int(np.count_nonzero(edges))} pixel biên")
        return edges

    @handle_vision_error("phát hiện điểm đặc trưng", wrap_as=FeatureDetectionError)
    def detect_keypoints(self, image: np.ndarray, method: KeypointDetector = KeypointDetector.ORB,
                         params: KeypointParams = None) -> list:
        """
        Phát hiện điểm đặc trưng.

        Args:
            image: Ảnh đầu vào
            method: Bộ phát hiện điểm đặc trưng
            params: Tham số phát hiện

        Returns:
            list: Danh sách cv2.KeyPoint
        """
        validate_input(image)
        params = params or KeypointParams()
        method = KeypointDetector(method)
        processed = prepare_image(image)

        if method == KeypointDetector.SIFT:
            detector = cv2.SIFT_create(nfeatures=params.max_keypoints)
            keypoints = list(detector.detect(processed, None))
        elif method == KeypointDetector.ORB:
            detector = cv2.ORB_create(nfeatures=params.max_keypoints, scaleFactor=params.scale_factor,
                                      nlevels=params.n_levels, edgeThreshold=params.edge_threshold)
            keypoints = list(detector.detect(processed, None))
        else:
            detector = cv2.FastFeatureDetector_create(threshold=params.fast_threshold)
            keypoints = list(detector.detect(processed, None))
            # Giữ lại các điểm có response mạnh nhất
            if len(keypoints) > params.max_keypoints:
                keypoints.sort(key=lambda keypoint: keypoint.response, reverse=True)
                keypoints = keypoints[:params.max_keypoints]

        logger.info(f"Đã phát hiện {len(keypoints)} điểm đặc trưng bằng {method.value}")
        return keypoints

    def draw_keypoints(self, image: np.ndarray, keypoints: Sequence) -> np.ndarray:
        """Vẽ các điểm đặc trưng (kèm kích thước và hướng) lên ảnh"""
        validate_input(image)
        return cv2.drawKeypoints(to_bgr(image), list(keypoints), None, (-1, -1, -1),
                                 cv2.DRAW_MATCHES_FLAGS_DRAW_RICH_KEYPOINTS)

    @handle_vision_error("tính GLCM", wrap_as=FeatureDetectionError)
    def compute_glcm(self, image: np.ndarray, distances: Sequence[int] = (1,),
                     angles: Sequence[float] = DEFAULT_GLCM_ANGLES, levels: int = 256) -> np.ndarray:
        """
        Tính ma trận đồng xuất hiện mức xám (đối xứng, đã chuẩn hóa).

        Args:
            image: Ảnh đầu vào
            distances: Các khoảng cách giữa cặp pixel
            angles: Các góc (radian)
            levels: Số mức xám; ảnh được lượng tử hóa về [0, levels)

        Returns:
            np.ndarray: Mảng 4 chiều (levels, levels, len(distances), len(angles))
        """
        validate_input(image)
        if not 2 <= levels <= 256:
            raise InvalidParameterError(f"Số mức xám phải nằm trong [2, 256], nhận được {levels}")

        processed = prepare_image(image)
        if levels < 256:
            processed = (processed.astype(np.uint16) * levels // 256).astype(np.uint8)

        glcm = graycomatrix(processed, distances=list(distances), angles=list(angles),
                            levels=levels, symmetric=True, normed=True)

        logger.debug(f"Đã tính GLCM {glcm.shape}")
        return glcm

    @handle_vision_error("trích xuất đặc trưng kết cấu", wrap_as=FeatureDetectionError)
    def extract_texture_features(self, image_or_glcm: np.ndarray) -> Tuple[float, float, float, float]:
        """
        Trích xuất đặc trưng kết cấu Haralick từ ảnh hoặc từ GLCM đã tính.

        Returns:
            Tuple[float, float, float, float]: (contrast, correlation, energy, homogeneity),
                                               lấy trung bình theo mọi khoảng cách và góc
        """
        if isinstance(image_or_glcm, np.ndarray) and image_or_glcm.ndim == 4:
            glcm = image_or_glcm
        else:
            glcm = self.compute_glcm(image_or_glcm)

        features = tuple(float(np.mean(graycoprops(glcm, prop))) for prop in TEXTURE_PROPERTIES)

        logger.info("Đặc trưng kết cấu: " + ", ".join(
            f"{name}={value:.4f}" for name, value in zip(TEXTURE_PROPERTIES, features)))
        return features
