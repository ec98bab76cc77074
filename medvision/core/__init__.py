#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Module lõi của MedVision: các ngoại lệ và công cụ xử lý lỗi.
"""

from medvision.core.errors import (
    VisionErrorCodes,
    MedVisionError,
    InvalidInputError,
    InvalidParameterError,
    MissingSeedsError,
    MissingMarkersError,
    UnsupportedMethodError,
    SegmentationFailedError,
    FeatureDetectionError,
    ModelNotLoadedError,
    ImageLoadError,
    handle_vision_error,
)

__all__ = [
    "VisionErrorCodes",
    "MedVisionError",
    "InvalidInputError",
    "InvalidParameterError",
    "MissingSeedsError",
    "MissingMarkersError",
    "UnsupportedMethodError",
    "SegmentationFailedError",
    "FeatureDetectionError",
    "ModelNotLoadedError",
    "ImageLoadError",
    "handle_vision_error",
]
