#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Module này bọc một mạng phân loại bệnh lý X-quang ngực (14 nhãn) chạy
bằng module DNN của OpenCV.

Mạng được tải từ file bằng load_model() hoặc được truyền trực tiếp vào
hàm khởi tạo (bất kỳ đối tượng nào có setInput/forward).
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from medvision.core.errors import ModelNotLoadedError
from medvision.utils.logging import get_logger

logger = get_logger("ChestXRayAnalyzer")

PATHOLOGIES = (
    "Atelectasis", "Consolidation", "Infiltration",
    "Pneumothorax", "Edema", "Emphysema",
    "Fibrosis", "Effusion", "Pneumonia",
    "Pleural_Thickening", "Cardiomegaly",
    "Nodule", "Mass", "Hernia",
)

PIXEL_SCALE = 1.0 / 255.0
MEAN_VALUE = 0.485     # Trung bình ImageNet
STD_VALUE = 0.229      # Độ lệch chuẩn ImageNet


@dataclass
class ModelConfig:
    model_path: str = ""
    config_path: str = ""
    input_size: Tuple[int, int] = (224, 224)
    confidence_threshold: float = 0.5
    use_gpu: bool = False
    generate_heatmaps: bool = False


@dataclass
class Detection:
    pathology: str
    confidence: float
    region: Optional[Tuple[int, int, int, int]] = None
    heatmap: Optional[np.ndarray] = None


@dataclass
class AnalysisResult:
    detections: List[Detection] = field(default_factory=list)
    processed_image: Optional[np.ndarray] = None
    processing_time: float = 0.0
    success: bool = False
    error_message: str = ""


class ChestXRayAnalyzer:
    """Phân tích ảnh X-quang ngực bằng mạng nơ-ron"""

    def __init__(self, net=None, config: Optional[ModelConfig] = None):
        """
        Args:
            net: Mạng đã tải sẵn (tùy chọn)
            config: Cấu hình mô hình; mặc định ModelConfig()
        """
        self._net = net
        self._config = config or ModelConfig()
        self._model_loaded = net is not None

    def load_model(self, config: ModelConfig) -> bool:
        """
        Tải mạng từ file bằng cv2.dnn.

        Args:
            config: Cấu hình mô hình

        Returns:
            bool: True nếu tải thành công

        Raises:
            ModelNotLoadedError: Không tải được mô hình
        """
        try:
            net = cv2.dnn.readNet(config.model_path, config.config_path)
            if config.use_gpu:
                net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
                net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
            else:
                net.setPreferableBackend(cv2.dnn.DNN_BACKEND_DEFAULT)
                net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)
        except cv2.error as error:
            self._model_loaded = False
            logger.error(f"Không thể tải mô hình {config.model_path}: {error}")
            raise ModelNotLoadedError(f"Không thể tải mô hình: {error}",
                                      additional_info={'model_path': config.model_path}) from error

        self._net = net
        self._config = config
        self._model_loaded = True
        logger.info(f"Đã tải mô hình {config.model_path} (GPU={config.use_gpu})")
        return True

    def analyze(self, image: np.ndarray) -> AnalysisResult:
        """
        Phân tích một ảnh X-quang.

        Không raise ngoại lệ: mọi lỗi được trả về qua `success` và `error_message`.

        Args:
            image: Ảnh grayscale 8-bit

        Returns:
            AnalysisResult: Kết quả phân tích
        """
        result = AnalysisResult()

        if not self.is_model_loaded():
            result.error_message = "Chưa tải mô hình"
            return result

        if not self._validate_input(image):
            result.error_message = "Ảnh đầu vào không hợp lệ (cần ảnh grayscale 8-bit)"
            return result

        try:
            start = time.perf_counter()

            self._net.setInput(self.preprocess_image(image))
            outputs = self._net.forward()
            result.detections = self.postprocess_outputs(outputs)

            if self._config.generate_heatmaps and result.detections:
                features = self._feature_map()
                if features is not None:
                    heatmap = self.generate_heatmap(image, features)
                    for detection in result.detections:
                        detection.heatmap = heatmap

            result.processing_time = time.perf_counter() - start
            result.processed_image = image.copy()
            result.success = True
        except Exception as error:
            logger.error(f"Lỗi khi phân tích ảnh: {str(error)}")
            result.success = False
            result.error_message = str(error)
            return result

        logger.info(f"Phân tích xong trong {result.processing_time:.3f}s: "
                    f"{len(result.detections)} phát hiện")
        return result

    def analyze_batch(self, images: Sequence[np.ndarray], batch_size: int = 1) -> List[AnalysisResult]:
        """Phân tích lần lượt một danh sách ảnh theo từng lô"""
        batch_size = max(1, int(batch_size))
        results = []
        for start in range(0, len(images), batch_size):
            for image in images[start:start + batch_size]:
                results.append(self.analyze(image))
        return results

    def preprocess_image(self, image: np.ndarray) -> np.ndarray:
        """Chuẩn hóa ảnh về [0, 1], đổi kích thước, chuẩn hóa ImageNet và tạo blob"""
        processed = image.astype(np.float32) * PIXEL_SCALE
        processed = cv2.resize(processed, tuple(self._config.input_size))
        processed = (processed - MEAN_VALUE) / STD_VALUE
        return cv2.dnn.blobFromImage(processed)

    def postprocess_outputs(self, outputs: np.ndarray) -> List[Detection]:
        """Tạo một Detection cho mỗi điểm số không nhỏ hơn ngưỡng tin cậy"""
        scores = np.asarray(outputs, dtype=np.float32).ravel()
        detections = []
        for name, score in zip(PATHOLOGIES, scores):
            if score >= self._config.confidence_threshold:
                detections.append(Detection(pathology=name, confidence=float(score)))
        return detections

    def generate_heatmap(self, image: np.ndarray, features: np.ndarray) -> np.ndarray:
        """
        Tạo heatmap màu từ bản đồ đặc trưng.

        Args:
            image: Ảnh gốc (dùng để lấy kích thước)
            features: Bản đồ đặc trưng; mảng nhiều chiều được lấy trung bình về 2D

        Returns:
            np.ndarray: Heatmap BGR (bảng màu JET) cùng kích thước ảnh
        """
        features = np.asarray(features, dtype=np.float32)
        while features.ndim > 2:
            features = features.mean(axis=0)
        if features.ndim < 2:
            features = features.reshape(1, -1)

        heatmap = cv2.normalize(features, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)
        heatmap = cv2.applyColorMap(heatmap, cv2.COLORMAP_JET)
        return cv2.resize(heatmap, (image.shape[1], image.shape[0]))

    def _feature_map(self) -> Optional[np.ndarray]:
        """Trọng số của lớp cuối cùng trong mạng, None nếu không lấy được"""
        try:
            layer = self._net.getLayer(self._net.getLayerNames()[-1])
            blobs = layer.blobs
        except (AttributeError, IndexError, cv2.error) as error:
            logger.warning(f"Không lấy được bản đồ đặc trưng cho heatmap: {error}")
            return None
        return blobs[0] if len(blobs) else None

    def _validate_input(self, image) -> bool:
        return (isinstance(image, np.ndarray) and image.size > 0
                and image.ndim == 2 and image.dtype == np.uint8)

    def is_model_loaded(self) -> bool:
        return self._model_loaded and self._net is not None

    def get_available_pathologies(self) -> List[str]:
        return list(PATHOLOGIES)

    def get_config(self) -> ModelConfig:
        return self._config

    def set_confidence_threshold(self, threshold: float):
        """Đặt ngưỡng tin cậy; giá trị ngoài [0, 1] bị bỏ qua"""
        if 0.0 <= threshold <= 1.0:
            self._config.confidence_threshold = threshold
        else:
            logger.warning(f"Ngưỡng tin cậy {threshold} nằm ngoài [0, 1], giữ nguyên "
                           f"{self._config.confidence_threshold}")
