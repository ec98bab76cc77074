#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Quản lý cấu hình toàn cục cho MedVision
"""

import os
import copy
import json
import logging
from typing import Dict, Any, List


def _default_home() -> str:
    """Thư mục dữ liệu làm việc, có thể ghi đè bằng biến môi trường MEDVISION_HOME"""
    return os.environ.get("MEDVISION_HOME", os.path.join(os.path.expanduser("~"), "MedVision_Data"))


def _default_config_path() -> str:
    """Đường dẫn file cấu hình, có thể ghi đè bằng biến môi trường MEDVISION_CONFIG"""
    return os.environ.get("MEDVISION_CONFIG", os.path.join(os.path.expanduser("~"), ".medvision", "config.json"))


def build_default_config() -> Dict[str, Any]:
    """Tạo cấu hình mặc định"""
    home = _default_home()
    return {
        "workspace": {
            "root_dir": home,
            "output_dir": os.path.join(home, "output")
        },
        "logging": {
            "level": "INFO",
            "file_logging": True,
            "log_dir": os.path.join(home, "logs"),
            "max_file_size_mb": 10,
            "backup_count": 5
        },
        "segmentation": {
            "threshold": 128,
            "max_value": 255,
            "invert_colors": False,
            "block_size": 11,
            "C": 2.0,
            "region_threshold": 20.0,
            "connectivity": 8,
            "use_distance_transform": True,
            "overlay_alpha": 0.5,
            "overlay_color": [0, 0, 255]
        },
        "preprocessing": {
            "gaussian_kernel": 3,
            "gaussian_sigma": 1.0,
            "median_kernel": 3,
            "bilateral_diameter": 9,
            "bilateral_sigma_color": 75,
            "bilateral_sigma_space": 75,
            "nlm_h": 3.0,
            "nlm_template_window": 7,
            "nlm_search_window": 21,
            "clahe_clip_limit": 2.0,
            "clahe_tile_grid": [8, 8],
            "sharpen_strength": 1.0,
            "unsharp_sigma": 1.0,
            "unsharp_strength": 1.5
        },
        "features": {
            "canny_threshold1": 100,
            "canny_threshold2": 200,
            "aperture_size": 3,
            "l2_gradient": False,
            "max_keypoints": 1000,
            "orb_scale_factor": 1.2,
            "orb_n_levels": 8,
            "orb_edge_threshold": 31,
            "fast_threshold": 20
        },
        "analysis": {
            "input_size": [224, 224],
            "confidence_threshold": 0.5,
            "use_gpu": False,
            "generate_heatmaps": False
        },
        "display": {
            "comparison_size": [1280, 1024]
        }
    }


class GlobalConfig:
    """Lớp quản lý cấu hình toàn cục"""

    _instance = None

    def __new__(cls):
        """Singleton pattern"""
        if not cls._instance:
            cls._instance = super(GlobalConfig, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    @classmethod
    def reset_instance(cls):
        """Hủy instance hiện tại để lần gọi sau đọc lại cấu hình từ đĩa"""
        cls._instance = None

    def _initialize(self):
        """Khởi tạo cấu hình"""
        self._config_path = _default_config_path()
        self._default_config = build_default_config()
        self.config = self._load_config()
        self._ensure_directories()

    @property
    def config_path(self) -> str:
        return self._config_path

    def _load_config(self) -> Dict[str, Any]:
        """Tải cấu hình từ file"""
        try:
            os.makedirs(os.path.dirname(self._config_path), exist_ok=True)

            if os.path.exists(self._config_path):
                with open(self._config_path, 'r', encoding='utf-8') as f:
                    user_config = json.load(f)

                # Hợp nhất cấu hình người dùng với cấu hình mặc định
                config = self._merge_configs(self._default_config, user_config)
            else:
                config = copy.deepcopy(self._default_config)

                with open(self._config_path, 'w', encoding='utf-8') as f:
                    json.dump(config, f, indent=4, ensure_ascii=False)

            return config
        except (OSError, ValueError) as error:
            logging.error(f"Lỗi khi tải cấu hình: {str(error)}")
            return copy.deepcopy(self._default_config)

    def _merge_configs(self, default_config: Dict, user_config: Dict) -> Dict:
        """Hợp nhất cấu hình người dùng với cấu hình mặc định"""
        result = copy.deepcopy(default_config)

        for key, value in user_config.items():
            if key in result and isinstance(value, dict) and isinstance(result[key], dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _ensure_directories(self):
        """Đảm bảo các thư mục cần thiết tồn tại"""
        directories = [
            self.get("workspace.root_dir"),
            self.get("logging.log_dir")
        ]

        for directory in directories:
            if directory:
                os.makedirs(directory, exist_ok=True)

    def load_file(self, config_path: str) -> bool:
        """
        Nạp thêm một file cấu hình và hợp nhất vào cấu hình hiện tại

        Args:
            config_path: Đường dẫn đến file JSON

        Returns:
            True nếu thành công, False nếu thất bại
        """
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                user_config = json.load(f)
        except (OSError, ValueError) as error:
            logging.error(f"Lỗi khi đọc file cấu hình {config_path}: {str(error)}")
            return False

        self.config = self._merge_configs(self.config, user_config)
        return True

    def get(self, key_path: str, default=None) -> Any:
        """
        Lấy giá trị cấu hình theo đường dẫn khóa

        Args:
            key_path: Đường dẫn khóa, phân tách bằng dấu chấm (ví dụ: "segmentation.block_size")
            default: Giá trị mặc định nếu không tìm thấy khóa

        Returns:
            Giá trị cấu hình
        """
        try:
            value = self.config
            for part in key_path.split('.'):
                value = value[part]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key_path: str, value: Any) -> bool:
        """
        Đặt giá trị cấu hình theo đường dẫn khóa và lưu xuống file

        Args:
            key_path: Đường dẫn khóa, phân tách bằng dấu chấm
            value: Giá trị cần đặt

        Returns:
            True nếu thành công, False nếu thất bại
        """
        parts = key_path.split('.')
        config = self.config

        for part in parts[:-1]:
            if not isinstance(config.get(part), dict):
                config[part] = {}
            config = config[part]

        config[parts[-1]] = value
        return self.save()

    def save(self) -> bool:
        """
        Lưu cấu hình hiện tại vào file

        Returns:
            True nếu thành công, False nếu thất bại
        """
        try:
            with open(self._config_path, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=4, ensure_ascii=False)
            return True
        except OSError as error:
            logging.error(f"Lỗi khi lưu cấu hình: {str(error)}")
            return False

    def reset_to_default(self) -> bool:
        """Đặt lại cấu hình về mặc định"""
        self.config = copy.deepcopy(self._default_config)
        self._ensure_directories()
        return self.save()

    def validate_config(self) -> List[str]:
        """
        Xác thực cấu hình hiện tại

        Returns:
            Danh sách các lỗi, rỗng nếu không có lỗi
        """
        errors = []

        for path_key in ["workspace.root_dir", "logging.log_dir"]:
            path = self.get(path_key)
            if not path or not isinstance(path, str):
                errors.append(f"Đường dẫn không hợp lệ cho {path_key}: {path}")

        for num_key in ["logging.max_file_size_mb", "logging.backup_count", "preprocessing.clahe_clip_limit",
                        "features.max_keypoints"]:
            value = self.get(num_key)
            if not isinstance(value, (int, float)) or value <= 0:
                errors.append(f"Giá trị không hợp lệ cho {num_key}: {value}")

        block_size = self.get("segmentation.block_size")
        if not isinstance(block_size, int) or block_size < 3 or block_size % 2 == 0:
            errors.append(f"segmentation.block_size phải là số lẻ >= 3, nhận được {block_size}")

        if self.get("segmentation.connectivity") not in (4, 8):
            errors.append(f"segmentation.connectivity phải là 4 hoặc 8, nhận được {self.get('segmentation.connectivity')}")

        alpha = self.get("segmentation.overlay_alpha")
        if not isinstance(alpha, (int, float)) or not 0.0 <= alpha <= 1.0:
            errors.append(f"segmentation.overlay_alpha phải nằm trong [0, 1], nhận được {alpha}")

        level = self.get("logging.level")
        if not isinstance(level, str) or level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"Mức log không hợp lệ: {level}")

        return errors


def get_config(key_path: str, default=None) -> Any:
    """Hàm tiện ích lấy giá trị cấu hình"""
    return GlobalConfig().get(key_path, default)


def set_config(key_path: str, value: Any) -> bool:
    """Hàm tiện ích đặt giá trị cấu hình"""
    return GlobalConfig().set(key_path, value)
