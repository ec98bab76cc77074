"""
Module logging.py
----------------
Ghi log cho các thao tác xử lý ảnh của MedVision: mỗi thành phần (Segmentation,
ImagePreprocessor, FeatureDetector, ...) có một logger riêng theo tên, ghi ra
console và file xoay vòng trong thư mục log của cấu hình.
"""

import os
import sys
import json
import logging
import datetime
import platform
import threading
import traceback
from logging.handlers import RotatingFileHandler
from typing import Any

from medvision.utils.config import get_config


class VisionLogger:
    """
    Logger theo tên cho một thành phần xử lý ảnh.

    Mỗi tên chỉ có một instance (lấy qua get_instance/get_logger). Mức log,
    thư mục và kích thước file log được đọc từ khóa `logging.*` của
    GlobalConfig mỗi lần configure() được gọi.
    """

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    # Logger đã tạo, theo tên thành phần
    _loggers = {}

    _lock = threading.RLock()

    @classmethod
    def get_instance(cls, logger_name: str = "MedVision") -> 'VisionLogger':
        """
        Lấy logger của một thành phần, tạo mới nếu chưa có

        Args:
            logger_name: Tên thành phần (ví dụ "Segmentation")

        Returns:
            VisionLogger: Logger dùng chung cho tên này
        """
        with cls._lock:
            if logger_name not in cls._loggers:
                cls._loggers[logger_name] = cls(logger_name)
            return cls._loggers[logger_name]

    def __init__(self, logger_name: str = "MedVision", **options):
        """
        Args:
            logger_name: Tên thành phần
            **options: Giá trị ghi đè cấu hình, xem configure()
        """
        self.logger_name = logger_name
        self.logger = logging.getLogger(logger_name)
        self.configure(**options)

    def configure(self, log_level: int = None, log_to_file: bool = None, log_directory: str = None,
                  max_file_size: int = None, backup_count: int = None, log_format: str = None):
        """
        Dựng lại các handler từ cấu hình hiện tại.

        Tham số nào để None thì lấy từ khóa `logging.*` tương ứng.

        Args:
            log_level: Mức log
            log_to_file: Có ghi ra file `<log_directory>/<tên>.log` hay không
            log_directory: Thư mục chứa file log
            max_file_size: Kích thước tối đa một file log (bytes)
            backup_count: Số file log cũ được giữ lại
            log_format: Định dạng dòng log
        """
        if log_level is None:
            log_level_str = get_config("logging.level", "INFO")
            log_level = getattr(logging, str(log_level_str).upper(), logging.INFO)

        if log_to_file is None:
            log_to_file = get_config("logging.file_logging", True)

        if log_directory is None:
            log_directory = get_config("logging.log_dir",
                                       os.path.join(os.path.expanduser("~"), "MedVision_Data", "logs"))

        if max_file_size is None:
            max_file_size = get_config("logging.max_file_size_mb", 10) * 1024 * 1024

        if backup_count is None:
            backup_count = get_config("logging.backup_count", 5)

        formatter = logging.Formatter(log_format or self.DEFAULT_FORMAT)

        with self._lock:
            self.logger.setLevel(log_level)

            for handler in self.logger.handlers[:]:
                self.logger.removeHandler(handler)
                handler.close()

            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

            self.log_file = None
            if log_to_file:
                os.makedirs(log_directory, exist_ok=True)
                self.log_file = os.path.join(log_directory, f"{self.logger_name}.log")
                file_handler = RotatingFileHandler(
                    self.log_file,
                    maxBytes=max_file_size,
                    backupCount=backup_count,
                    encoding='utf-8',
                    delay=True
                )
                file_handler.setFormatter(formatter)
                self.logger.addHandler(file_handler)

    def set_level(self, level: int):
        """Đổi mức log cho logger và toàn bộ handler"""
        self.logger.setLevel(level)
        for handler in self.logger.handlers:
            handler.setLevel(level)

    def debug(self, message: str, *args, **kwargs):
        self.logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs):
        self.logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs):
        self.logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs):
        self.logger.error(message, *args, **kwargs)

    def critical(self, message: str, *args, **kwargs):
        self.logger.critical(message, *args, **kwargs)

    def exception(self, message: str = "Lỗi trong quá trình xử lý ảnh:", *args, **kwargs):
        """Ghi log ngoại lệ hiện tại kèm traceback"""
        self.logger.exception(message, *args, **kwargs)

    def log_error(self, message: str, include_traceback: bool = False, **kwargs):
        """
        Ghi log mức ERROR

        Args:
            message: Thông điệp lỗi
            include_traceback: Kèm traceback của ngoại lệ đang xử lý
        """
        self.logger.error(message, exc_info=include_traceback, **kwargs)

    def log_operation(self, operation: str, status: str, details: Any = None, **kwargs):
        """
        Ghi log kết quả một thao tác xử lý ảnh

        Args:
            operation: Tên thao tác (ví dụ "otsu", "clahe")
            status: "success" được ghi ở mức INFO, trạng thái khác ở mức ERROR
            details: Thông tin thêm (kích thước ảnh, số pixel tiền cảnh, ...)
        """
        message = f"Thao tác: {operation}, Trạng thái: {status}"
        if details:
            if isinstance(details, dict):
                details_str = json.dumps(details, ensure_ascii=False, default=str)
            else:
                details_str = str(details)
            message += f", Chi tiết: {details_str}"

        if status.lower() in ["success", "thành công", "ok"]:
            self.info(message, **kwargs)
        else:
            self.error(message, **kwargs)

    def get_logger(self) -> logging.Logger:
        """Lấy đối tượng logging.Logger bên dưới"""
        return self.logger


def get_logger(module_name: str = None) -> VisionLogger:
    """
    Lấy logger cho thành phần

    Args:
        module_name: Tên thành phần; mặc định là tên module gọi hàm

    Returns:
        VisionLogger: Logger của thành phần
    """
    if module_name is None:
        frame = sys._getframe(1)
        module_name = frame.f_globals.get('__name__', 'unknown')

    return VisionLogger.get_instance(module_name)


def set_global_level(level: int):
    """Đổi mức log cho tất cả các logger đã tạo"""
    with VisionLogger._lock:
        for vision_logger in VisionLogger._loggers.values():
            vision_logger.set_level(level)


def reload_logging_config():
    """Dựng lại handler của mọi logger đã tạo sau khi cấu hình `logging.*` thay đổi"""
    with VisionLogger._lock:
        for vision_logger in VisionLogger._loggers.values():
            vision_logger.configure()


def log_system_info() -> bool:
    """Ghi log môi trường chạy: hệ điều hành, Python, bộ nhớ và phiên bản OpenCV"""
    logger = get_logger("SystemInfo")

    try:
        import cv2
        import psutil

        os_info = {
            "system": platform.system(),
            "release": platform.release(),
            "machine": platform.machine()
        }
        python_info = {
            "version": platform.python_version(),
            "implementation": platform.python_implementation()
        }
        memory = psutil.virtual_memory()

        logger.info(f"Hệ điều hành: {json.dumps(os_info, ensure_ascii=False)}")
        logger.info(f"Python: {json.dumps(python_info, ensure_ascii=False)}")
        logger.info(f"Bộ nhớ RAM: {memory.total / (1024 ** 3):.2f} GB (Khả dụng: {memory.available / (1024 ** 3):.2f} GB)")
        logger.info(f"OpenCV: {cv2.__version__} ({psutil.cpu_count()} CPU)")
        logger.info(f"Thời gian: {datetime.datetime.now().isoformat()}")
        return True
    except Exception as e:
        logger.log_error(f"Lỗi khi ghi log thông tin hệ thống: {str(e)}", include_traceback=True)
        return False


def setup_exception_logging():
    """Thiết lập xử lý ngoại lệ không bắt được"""
    logger = get_logger("UncaughtException")

    def exception_handler(exc_type, exc_value, exc_traceback):
        """Xử lý ngoại lệ không bắt được"""
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        logger.critical(f"Ngoại lệ không bắt được: {exc_type.__name__}: {exc_value}")
        tb_lines = traceback.format_exception(exc_type, exc_value, exc_traceback)
        for line in tb_lines:
            logger.critical(line.rstrip())

    sys.excepthook = exception_handler
