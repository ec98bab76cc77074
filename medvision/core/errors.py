#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Module cung cấp các lớp ngoại lệ và công cụ xử lý lỗi cho MedVision
"""

import functools
import traceback
from enum import Enum, auto
from typing import Any, Dict, Type

from medvision.utils.logging import get_logger

logger = get_logger(__name__)


class VisionErrorCodes(Enum):
    """
    Mã lỗi của MedVision
    """
    INVALID_INPUT = auto()
    INVALID_PARAMETER = auto()
    MISSING_SEEDS = auto()
    MISSING_MARKERS = auto()
    UNSUPPORTED_METHOD = auto()
    SEGMENTATION_FAILED = auto()
    FEATURE_DETECTION_FAILED = auto()
    MODEL_NOT_LOADED = auto()
    IMAGE_LOAD_FAILED = auto()
    UNKNOWN_ERROR = auto()


class MedVisionError(Exception):
    """
    Lớp ngoại lệ gốc cho tất cả các lỗi của MedVision
    """

    default_code = VisionErrorCodes.UNKNOWN_ERROR

    def __init__(self, message: str, error_code: VisionErrorCodes = None, additional_info: Dict[str, Any] = None):
        """
        Khởi tạo ngoại lệ

        Args:
            message: Thông báo lỗi
            error_code: Mã lỗi từ VisionErrorCodes
            additional_info: Thông tin bổ sung về lỗi
        """
        self.message = message
        self.error_code = error_code or self.default_code
        self.additional_info = additional_info or {}
        super().__init__(self.message)

    def __str__(self):
        return f"{type(self).__name__}[{self.error_code.name}]: {self.message}"


class InvalidInputError(MedVisionError):
    """Ảnh đầu vào rỗng hoặc không hợp lệ"""
    default_code = VisionErrorCodes.INVALID_INPUT


class InvalidParameterError(MedVisionError):
    """Tham số sai cấu trúc, phát hiện trước khi xử lý"""
    default_code = VisionErrorCodes.INVALID_PARAMETER


class MissingSeedsError(MedVisionError):
    """Thuật toán cần điểm seed nhưng không được cung cấp"""
    default_code = VisionErrorCodes.MISSING_SEEDS


class MissingMarkersError(MissingSeedsError):
    """Không tạo được marker nào cho watershed"""
    default_code = VisionErrorCodes.MISSING_MARKERS


class UnsupportedMethodError(MedVisionError):
    """Phương pháp chưa được nối với cài đặt nào"""
    default_code = VisionErrorCodes.UNSUPPORTED_METHOD


class SegmentationFailedError(MedVisionError):
    """Lỗi bất ngờ trong quá trình phân vùng, giữ nguyên nguyên nhân gốc"""
    default_code = VisionErrorCodes.SEGMENTATION_FAILED


class FeatureDetectionError(MedVisionError):
    default_code = VisionErrorCodes.FEATURE_DETECTION_FAILED


class ModelNotLoadedError(MedVisionError):
    default_code = VisionErrorCodes.MODEL_NOT_LOADED


class ImageLoadError(MedVisionError):
    default_code = VisionErrorCodes.IMAGE_LOAD_FAILED


def wrap_error(error: BaseException, operation: str, wrap_as: Type[MedVisionError]) -> MedVisionError:
    """
    Chuyển một ngoại lệ bất kỳ thành ngoại lệ MedVision, giữ lại nguyên nhân gốc

    Args:
        error: Ngoại lệ gốc
        operation: Tên thao tác đang thực hiện
        wrap_as: Lớp ngoại lệ đích

    Returns:
        MedVisionError: Ngoại lệ đã bọc (người gọi tự raise ... from error)
    """
    return wrap_as(
        f"{operation} thất bại: {str(error)}",
        additional_info={
            'traceback': traceback.format_exc(),
            'original_error': error,
            'operation': operation
        }
    )


def handle_vision_error(operation: str, wrap_as: Type[MedVisionError] = SegmentationFailedError):
    """
    Decorator để xử lý các lỗi một cách nhất quán

    Ngoại lệ MedVision được chuyển tiếp nguyên vẹn, các ngoại lệ khác
    (ví dụ cv2.error) được bọc thành `wrap_as`.

    Args:
        operation: Tên thao tác dùng trong thông báo lỗi
        wrap_as: Lớp ngoại lệ dùng để bọc lỗi không xác định

    Returns:
        Decorator
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except MedVisionError as vision_error:
                logger.error(f"Lỗi {operation}: {vision_error}")
                raise
            except Exception as error:
                logger.error(f"Lỗi không xác định khi {operation}: {str(error)}")
                raise wrap_error(error, operation, wrap_as) from error

        return wrapper

    return decorator
