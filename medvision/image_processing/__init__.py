#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Module xử lý hình ảnh y tế cho MedVision.
Cung cấp các lớp và hàm để tải, tiền xử lý, phát hiện đặc trưng và phân vùng ảnh.
"""

from medvision.image_processing.image_loader import ImageLoader
from medvision.image_processing.preprocessor import ImagePreprocessor, NoiseReductionMethod, HistogramMethod
from medvision.image_processing.feature_detector import (
    FeatureDetector,
    EdgeDetector,
    EdgeParams,
    KeypointDetector,
    KeypointParams,
)
from medvision.image_processing.segmentation import Segmentation, prepare_image, validate_input
from medvision.image_processing.segmentation_params import (
    Method,
    ThresholdParams,
    AdaptiveParams,
    RegionGrowingParams,
    WatershedParams,
    GraphCutParams,
    params_from_config,
)
from medvision.image_processing.display import create_comparison_view, to_bgr

__all__ = [
    # Tải ảnh
    "ImageLoader",

    # Tiền xử lý
    "ImagePreprocessor",
    "NoiseReductionMethod",
    "HistogramMethod",

    # Phát hiện đặc trưng
    "FeatureDetector",
    "EdgeDetector",
    "EdgeParams",
    "KeypointDetector",
    "KeypointParams",

    # Phân vùng ảnh
    "Segmentation",
    "prepare_image",
    "validate_input",
    "Method",
    "ThresholdParams",
    "AdaptiveParams",
    "RegionGrowingParams",
    "WatershedParams",
    "GraphCutParams",
    "params_from_config",

    # Hiển thị
    "create_comparison_view",
    "to_bgr",
]
