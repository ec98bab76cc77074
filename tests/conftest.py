import os
import tempfile

# Cấu hình và log của phiên kiểm thử nằm trong thư mục tạm, đặt trước khi import medvision
_SESSION_HOME = tempfile.mkdtemp(prefix="medvision-tests-")
os.environ["MEDVISION_HOME"] = _SESSION_HOME
os.environ["MEDVISION_CONFIG"] = os.path.join(_SESSION_HOME, "config.json")

import cv2
import numpy as np
import pytest

from medvision.utils.config import GlobalConfig
from medvision.utils.logging import reload_logging_config


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    home = tmp_path / "home"
    monkeypatch.setenv("MEDVISION_HOME", str(home))
    monkeypatch.setenv("MEDVISION_CONFIG", str(tmp_path / "config" / "config.json"))
    GlobalConfig.reset_instance()
    yield tmp_path / "config" / "config.json"
    GlobalConfig.reset_instance()


@pytest.fixture
def restore_logging():
    """Dựng lại logger theo cấu hình mặc định sau các bài kiểm thử đổi mức hoặc thư mục log"""
    yield
    GlobalConfig.reset_instance()
    reload_logging_config()


@pytest.fixture
def disk_image():
    """Ảnh 100x100 nền 50 với một hình tròn sáng 200 bán kính 20 ở tâm"""
    image = np.full((100, 100), 50, dtype=np.uint8)
    cv2.circle(image, (50, 50), 20, 200, -1)
    return image


@pytest.fixture
def bimodal_image():
    """Nửa trái 30, nửa phải 220"""
    image = np.full((100, 100), 30, dtype=np.uint8)
    image[:, 50:] = 220
    return image


@pytest.fixture
def two_disks_image():
    image = np.full((100, 160), 50, dtype=np.uint8)
    cv2.circle(image, (40, 50), 15, 200, -1)
    cv2.circle(image, (120, 50), 15, 200, -1)
    return image


@pytest.fixture
def noise_image():
    rng = np.random.default_rng(0)
    return rng.integers(0, 256, size=(120, 120), dtype=np.uint8)
