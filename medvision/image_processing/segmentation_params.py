#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Các phương pháp phân vùng và bộ tham số tương ứng.

Mỗi phương pháp có một dataclass tham số riêng; `SegmentationParams` là
kiểu hợp (tagged union) của tất cả các biến thể. Điểm được biểu diễn
theo quy ước OpenCV: (x, y) = (cột, hàng).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Type, Union

from medvision.utils.config import get_config

Point = Tuple[int, int]
Rect = Tuple[int, int, int, int]


class Method(Enum):
    """Các phương pháp phân vùng"""
    THRESHOLD = "threshold"
    OTSU = "otsu"
    ADAPTIVE_MEAN = "adaptive-mean"
    ADAPTIVE_GAUSSIAN = "adaptive-gaussian"
    REGION_GROWING = "region-growing"
    WATERSHED = "watershed"
    GRAPH_CUT = "graph-cut"


@dataclass
class ThresholdParams:
    threshold: float = 128.0
    max_value: float = 255.0
    invert_colors: bool = False


@dataclass
class AdaptiveParams:
    block_size: int = 11
    C: float = 2.0
    max_value: float = 255.0
    invert_colors: bool = False


@dataclass
class RegionGrowingParams:
    seeds: List[Point] = field(default_factory=list)
    threshold: float = 20.0     # Ngưỡng chênh lệch cường độ giữa hai pixel kề nhau
    connectivity: int = 8       # 4 hoặc 8


@dataclass
class WatershedParams:
    use_distance_transform: bool = True
    foreground_seeds: List[Point] = field(default_factory=list)
    background_seeds: List[Point] = field(default_factory=list)


@dataclass
class GraphCutParams:
    foreground_rect: Rect = (0, 0, 0, 0)
    background_rect: Rect = (0, 0, 0, 0)
    lambda_: float = 50.0


SegmentationParams = Union[ThresholdParams, AdaptiveParams, RegionGrowingParams, WatershedParams, GraphCutParams]

# Biến thể tham số mà mỗi phương pháp chấp nhận; OTSU không có tham số
PARAMS_FOR_METHOD: Dict[Method, Optional[Type]] = {
    Method.THRESHOLD: ThresholdParams,
    Method.OTSU: None,
    Method.ADAPTIVE_MEAN: AdaptiveParams,
    Method.ADAPTIVE_GAUSSIAN: AdaptiveParams,
    Method.REGION_GROWING: RegionGrowingParams,
    Method.WATERSHED: WatershedParams,
    Method.GRAPH_CUT: GraphCutParams,
}


def params_from_config(method: Method, **overrides) -> Optional[SegmentationParams]:
    """
    Tạo bộ tham số cho phương pháp từ mục "segmentation" của cấu hình.

    Args:
        method: Phương pháp phân vùng
        **overrides: Các giá trị ghi đè (bỏ qua nếu là None)

    Returns:
        Bộ tham số tương ứng, hoặc None với OTSU
    """
    overrides = {key: value for key, value in overrides.items() if value is not None}

    if method == Method.THRESHOLD:
        values = {
            "threshold": get_config("segmentation.threshold", 128),
            "max_value": get_config("segmentation.max_value", 255),
            "invert_colors": get_config("segmentation.invert_colors", False),
        }
        values.update(overrides)
        return ThresholdParams(**values)

    if method in (Method.ADAPTIVE_MEAN, Method.ADAPTIVE_GAUSSIAN):
        values = {
            "block_size": get_config("segmentation.block_size", 11),
            "C": get_config("segmentation.C", 2.0),
            "max_value": get_config("segmentation.max_value", 255),
            "invert_colors": get_config("segmentation.invert_colors", False),
        }
        values.update(overrides)
        return AdaptiveParams(**values)

    if method == Method.REGION_GROWING:
        values = {
            "threshold": get_config("segmentation.region_threshold", 20.0),
            "connectivity": get_config("segmentation.connectivity", 8),
        }
        values.update(overrides)
        return RegionGrowingParams(**values)

    if method == Method.WATERSHED:
        values = {"use_distance_transform": get_config("segmentation.use_distance_transform", True)}
        values.update(overrides)
        return WatershedParams(**values)

    if method == Method.GRAPH_CUT:
        return GraphCutParams(**overrides)

    return None
