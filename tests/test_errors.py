import logging

import numpy as np
import pytest

from medvision.core.errors import (
    FeatureDetectionError,
    InvalidInputError,
    MedVisionError,
    MissingMarkersError,
    MissingSeedsError,
    SegmentationFailedError,
    VisionErrorCodes,
    handle_vision_error,
)
from medvision.utils.config import GlobalConfig
from medvision.utils.data_validation import validate_image, validate_mask
from medvision.utils.logging import VisionLogger, get_logger, log_system_info, reload_logging_config


def test_error_rendering():
    error = MissingMarkersError("không có marker")

    assert str(error) == "MissingMarkersError[MISSING_MARKERS]: không có marker"
    assert error.error_code == VisionErrorCodes.MISSING_MARKERS
    assert isinstance(error, MissingSeedsError)
    assert isinstance(error, MedVisionError)


def test_decorator_wraps_unknown_errors():
    @handle_vision_error("thử nghiệm")
    def broken():
        raise ValueError("hỏng")

    with pytest.raises(SegmentationFailedError) as excinfo:
        broken()

    assert isinstance(excinfo.value.__cause__, ValueError)
    assert excinfo.value.additional_info["operation"] == "thử nghiệm"


def test_decorator_passes_typed_errors_through():
    @handle_vision_error("thử nghiệm", wrap_as=FeatureDetectionError)
    def rejects():
        raise InvalidInputError("ảnh rỗng")

    @handle_vision_error("thử nghiệm", wrap_as=FeatureDetectionError)
    def crashes():
        raise RuntimeError("lỗi")

    with pytest.raises(InvalidInputError):
        rejects()
    with pytest.raises(FeatureDetectionError):
        crashes()


def test_validate_image():
    assert validate_image(np.zeros((3, 3), dtype=np.uint8))
    assert validate_image(np.zeros((3, 3, 4), dtype=np.uint8))
    assert validate_image(np.zeros((3, 3), dtype=np.float32)).warnings
    assert not validate_image(None)
    assert not validate_image([[1, 2]])
    assert not validate_image(np.zeros((2, 2, 2, 2), dtype=np.uint8))


def test_validate_mask():
    image = np.zeros((4, 5), dtype=np.uint8)

    assert validate_mask(np.zeros((4, 5), dtype=np.uint8), image)
    assert not validate_mask(np.zeros((5, 4), dtype=np.uint8), image)
    assert not validate_mask(np.zeros((4, 5, 3), dtype=np.uint8))
    assert validate_mask(np.full((4, 5), 7, dtype=np.uint8)).warnings


def test_logger_is_shared_per_name():
    first = get_logger("TestLogger")

    assert first is get_logger("TestLogger")
    assert isinstance(first, VisionLogger)
    first.log_operation("kiểm thử", "success", {"pixels": 10})


def test_log_system_info_reports_opencv(caplog):
    with caplog.at_level(logging.INFO, logger="SystemInfo"):
        assert log_system_info() is True

    assert any("OpenCV" in record.getMessage() for record in caplog.records)


def test_reload_applies_new_logging_settings(tmp_path, restore_logging):
    vision_logger = get_logger("ReloadTest")
    config = GlobalConfig()
    config.set("logging.level", "WARNING")
    config.set("logging.log_dir", str(tmp_path / "logs"))

    reload_logging_config()

    assert vision_logger.get_logger().level == logging.WARNING
    assert vision_logger.log_file == str(tmp_path / "logs" / "ReloadTest.log")
    assert len(vision_logger.get_logger().handlers) == 2
