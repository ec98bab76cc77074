#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Module phân tích ảnh X-quang ngực bằng mạng nơ-ron.
"""

from medvision.analysis.chest_xray_analyzer import (
    ChestXRayAnalyzer,
    ModelConfig,
    Detection,
    AnalysisResult,
    PATHOLOGIES,
)

__all__ = [
    "ChestXRayAnalyzer",
    "ModelConfig",
    "Detection",
    "AnalysisResult",
    "PATHOLOGIES",
]
