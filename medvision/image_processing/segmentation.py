#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Module này cung cấp bộ máy phân vùng ảnh y tế: ngưỡng cố định, Otsu,
ngưỡng thích nghi, region growing, watershed dựa trên marker, cùng các
bước hậu xử lý mask và hiển thị kết quả.

Bộ máy không giữ trạng thái giữa các lần gọi: mọi dữ liệu (ảnh, phương
pháp, tham số, danh sách seed) do người gọi truyền vào. Ảnh đầu vào
không bao giờ bị sửa đổi.
"""

from typing import List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from medvision.core.errors import (
    InvalidInputError,
    InvalidParameterError,
    MissingMarkersError,
    MissingSeedsError,
    SegmentationFailedError,
    UnsupportedMethodError,
    handle_vision_error,
    wrap_error,
)
from medvision.image_processing.display import to_bgr, to_uint8
from medvision.image_processing.segmentation_params import (
    PARAMS_FOR_METHOD,
    AdaptiveParams,
    Method,
    RegionGrowingParams,
    SegmentationParams,
    ThresholdParams,
    WatershedParams,
)
from medvision.utils.data_validation import validate_image, validate_mask
from medvision.utils.logging import get_logger

logger = get_logger("Segmentation")

FOREGROUND = 255

# Nhãn marker cho watershed (0 = chưa biết)
MANUAL_BACKGROUND_LABEL = 1
MANUAL_FOREGROUND_LABEL = 2
DT_BACKGROUND_LABEL = 128
DT_FOREGROUND_LABEL = 255

SEED_RADIUS = 2
DT_FOREGROUND_RATIO = 0.3
BACKGROUND_DILATE_ITERATIONS = 3

NEIGHBORS_8 = ((-1, -1), (0, -1), (1, -1),
               (-1, 0), (1, 0),
               (-1, 1), (0, 1), (1, 1))
NEIGHBORS_4 = ((0, -1), (-1, 0), (1, 0), (0, 1))


def validate_input(image) -> np.ndarray:
    """
    Kiểm tra ảnh đầu vào, raise InvalidInputError nếu ảnh rỗng hoặc sai dạng.

    Returns:
        np.ndarray: Chính ảnh đầu vào
    """
    result = validate_image(image)
    if not result:
        raise InvalidInputError(result.message)
    return image


def prepare_image(image: np.ndarray) -> np.ndarray:
    """
    Chuyển ảnh về grayscale 8-bit trước khi phân vùng.

    Ảnh nhiều kênh được chuyển sang grayscale, độ sâu bit khác 8 được
    bão hòa về uint8. Luôn trả về bản sao.

    Args:
        image: Ảnh đầu vào đã được kiểm tra

    Returns:
        np.ndarray: Ảnh grayscale uint8
    """
    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]

    if image.ndim == 3:
        if image.dtype not in (np.uint8, np.uint16, np.float32):
            image = image.astype(np.float32)
        code = cv2.COLOR_BGRA2GRAY if image.shape[2] == 4 else cv2.COLOR_BGR2GRAY
        processed = cv2.cvtColor(image, code)
    else:
        processed = image.copy()

    if processed.dtype != np.uint8:
        processed = to_uint8(processed)

    return processed


def _as_point(seed, name: str) -> Tuple[int, int]:
    try:
        x, y = seed
        return int(x), int(y)
    except (TypeError, ValueError) as error:
        raise InvalidParameterError(f"{name} không hợp lệ: {seed!r}") from error


class Segmentation:
    """
    Bộ máy phân vùng ảnh y tế.

    Cung cấp một điểm vào điều phối `segment()` và các điểm vào riêng cho
    từng phương pháp. Mọi mask trả về là ảnh uint8 một kênh cùng kích
    thước với ảnh đầu vào, giá trị 0 (nền) hoặc 255 (tiền cảnh).
    """

    def segment(self, image: np.ndarray, method: Union[Method, str],
                params: Optional[SegmentationParams] = None) -> np.ndarray:
        """
        Phân vùng ảnh bằng phương pháp được chọn.

        Args:
            image: Ảnh đầu vào (grayscale hoặc màu)
            method: Phương pháp phân vùng (Method hoặc giá trị chuỗi, ví dụ "otsu")
            params: Bộ tham số tương ứng với phương pháp; None để dùng mặc định

        Returns:
            np.ndarray: Mask nhị phân đã hậu xử lý

        Raises:
            InvalidInputError: Ảnh rỗng
            UnsupportedMethodError: Phương pháp chưa được hỗ trợ
            InvalidParameterError: Bộ tham số không khớp với phương pháp
            SegmentationFailedError: Mọi lỗi khác, kèm nguyên nhân gốc
        """
        validate_input(image)

        try:
            method = Method(method)
        except ValueError as error:
            raise UnsupportedMethodError(f"Phương pháp phân vùng không xác định: {method!r}") from error

        if method == Method.GRAPH_CUT:
            raise UnsupportedMethodError("Phân vùng graph cut chưa được hỗ trợ")

        params_type = PARAMS_FOR_METHOD[method]
        if params_type is None:
            if params is not None:
                logger.warning(f"Phương pháp {method.value} không dùng tham số, bỏ qua {type(params).__name__}")
        elif params is None:
            params = params_type()
        elif not isinstance(params, params_type):
            raise InvalidParameterError(
                f"Phương pháp {method.value} cần {params_type.__name__}, nhận được {type(params).__name__}"
            )

        try:
            if method == Method.THRESHOLD:
                result = self.threshold(image, params)
            elif method == Method.OTSU:
                result = self.otsu_threshold(image)
            elif method in (Method.ADAPTIVE_MEAN, Method.ADAPTIVE_GAUSSIAN):
                result = self.adaptive_threshold(image, params, method)
            elif method == Method.REGION_GROWING:
                result = self.region_growing(image, params)
            else:
                # Watershed đã tự đóng (closing) mask, không qua hậu xử lý chung
                return self.watershed(image, params)

            return self.post_process(result)
        except SegmentationFailedError:
            raise
        except Exception as error:
            logger.error(f"Phân vùng {method.value} thất bại: {error}")
            raise wrap_error(error, f"Phân vùng {method.value}", SegmentationFailedError) from error

    @handle_vision_error("phân vùng theo ngưỡng")
    def threshold(self, image: np.ndarray, params: Optional[ThresholdParams] = None) -> np.ndarray:
        """
        Phân vùng theo ngưỡng cố định.

        Args:
            image: Ảnh đầu vào
            params: Ngưỡng, giá trị tiền cảnh và cờ đảo màu

        Returns:
            np.ndarray: Mask nhị phân
        """
        validate_input(image)
        params = params or ThresholdParams()
        processed = prepare_image(image)

        threshold_type = cv2.THRESH_BINARY_INV if params.invert_colors else cv2.THRESH_BINARY
        _, result = cv2.threshold(processed, params.threshold, params.max_value, threshold_type)

        logger.info(f"Đã phân vùng theo ngưỡng {params.threshold} (đảo màu={params.invert_colors})")
        return result

    @handle_vision_error("phân vùng Otsu")
    def otsu_threshold(self, image: np.ndarray) -> np.ndarray:
        """Phân vùng theo ngưỡng tự động Otsu"""
        validate_input(image)
        processed = prepare_image(image)

        level, result = cv2.threshold(processed, 0, FOREGROUND, cv2.THRESH_BINARY | cv2.THRESH_OTSU)

        logger.info(f"Ngưỡng Otsu được chọn: {level}")
        return result

    @handle_vision_error("phân vùng theo ngưỡng thích nghi")
    def adaptive_threshold(self, image: np.ndarray, params: Optional[AdaptiveParams] = None,
                           method: Method = Method.ADAPTIVE_GAUSSIAN) -> np.ndarray:
        """
        Phân vùng theo ngưỡng thích nghi cục bộ.

        Args:
            image: Ảnh đầu vào
            params: Kích thước khối (lẻ, >= 3), hằng số C, giá trị tiền cảnh, cờ đảo màu
            method: ADAPTIVE_GAUSSIAN (trọng số Gauss) hoặc ADAPTIVE_MEAN (trung bình)

        Returns:
            np.ndarray: Mask nhị phân

        Raises:
            InvalidParameterError: Kích thước khối không hợp lệ
        """
        validate_input(image)
        params = params or AdaptiveParams()

        block_size = params.block_size
        if isinstance(block_size, bool) or not isinstance(block_size, (int, np.integer)):
            raise InvalidParameterError(f"Kích thước khối phải là số nguyên, nhận được {block_size!r}")
        if block_size < 3 or block_size % 2 == 0:
            raise InvalidParameterError(f"Kích thước khối phải là số lẻ >= 3, nhận được {block_size}")

        if method == Method.ADAPTIVE_MEAN:
            adaptive_method = cv2.ADAPTIVE_THRESH_MEAN_C
        elif method == Method.ADAPTIVE_GAUSSIAN:
            adaptive_method = cv2.ADAPTIVE_THRESH_GAUSSIAN_C
        else:
            raise InvalidParameterError(f"Không phải phương pháp ngưỡng thích nghi: {method}")

        processed = prepare_image(image)
        threshold_type = cv2.THRESH_BINARY_INV if params.invert_colors else cv2.THRESH_BINARY
        result = cv2.adaptiveThreshold(processed, params.max_value, adaptive_method,
                                       threshold_type, int(block_size), params.C)

        logger.info(f"Đã phân vùng thích nghi ({method.value}, khối {block_size}, C={params.C})")
        return result

    @handle_vision_error("region growing")
    def region_growing(self, image: np.ndarray, params: RegionGrowingParams) -> np.ndarray:
        """
        Thuật toán region growing từ một hoặc nhiều điểm seed.

        Từ mỗi seed chưa được gán, loang (flood fill) theo ngăn xếp: một pixel
        kề được nhận vào vùng nếu chênh lệch cường độ giữa nó và pixel hiện
        tại không vượt quá `params.threshold`. Mọi seed góp chung vào một mask.

        Args:
            image: Ảnh đầu vào
            params: Danh sách seed (x, y), ngưỡng chênh lệch, độ liên thông (4 hoặc 8)

        Returns:
            np.ndarray: Mask nhị phân

        Raises:
            MissingSeedsError: Không có seed
            InvalidParameterError: Seed nằm ngoài ảnh, ngưỡng âm hoặc độ liên thông sai
        """
        validate_input(image)

        # Đọc danh sách seed một lần; người gọi có thể tiếp tục sửa danh sách của họ
        seeds = [_as_point(seed, "Seed") for seed in list(params.seeds)]
        if not seeds:
            raise MissingSeedsError("Không có điểm seed cho region growing")

        if params.connectivity not in (4, 8):
            raise InvalidParameterError(f"Độ liên thông phải là 4 hoặc 8, nhận được {params.connectivity}")
        if params.threshold < 0:
            raise InvalidParameterError(f"Ngưỡng phải không âm, nhận được {params.threshold}")

        processed = prepare_image(image)
        height, width = processed.shape

        for x, y in seeds:
            if not (0 <= x < width and 0 <= y < height):
                raise InvalidParameterError(f"Seed ({x}, {y}) nằm ngoài ảnh {width}x{height}")

        offsets = NEIGHBORS_8 if params.connectivity == 8 else NEIGHBORS_4
        threshold = params.threshold
        intensities = processed.tolist()
        visited = [bytearray(width) for _ in range(height)]

        for seed_x, seed_y in seeds:
            if visited[seed_y][seed_x]:
                continue

            stack = [(seed_x, seed_y)]
            while stack:
                x, y = stack.pop()
                if visited[y][x]:
                    continue

                visited[y][x] = 1
                current = intensities[y][x]

                for dx, dy in offsets:
                    nx, ny = x + dx, y + dy
                    if nx < 0 or nx >= width or ny < 0 or ny >= height:
                        continue
                    if visited[ny][nx]:
                        continue
                    if abs(current - intensities[ny][nx]) <= threshold:
                        stack.append((nx, ny))

        mask = np.frombuffer(b"".join(visited), dtype=np.uint8).reshape(height, width) * FOREGROUND

        logger.info(f"Đã tạo mask bằng region growing từ {len(seeds)} điểm: "
                    f"{int(np.count_nonzero(mask))} pixel tiền cảnh")
        return mask

    @handle_vision_error("phân vùng watershed")
    def watershed(self, image: np.ndarray, params: Optional[WatershedParams] = None) -> np.ndarray:
        """
        Phân vùng watershed dựa trên marker.

        Marker được tạo từ biến đổi khoảng cách (use_distance_transform=True)
        hoặc từ các seed do người dùng đặt. Mask kết quả gồm các pixel mang
        nhãn tiền cảnh sau watershed, được làm sạch bằng một phép đóng.

        Args:
            image: Ảnh đầu vào
            params: Chế độ tạo marker và danh sách seed tiền cảnh/nền

        Returns:
            np.ndarray: Mask nhị phân

        Raises:
            MissingMarkersError: Không tạo được marker nào
        """
        validate_input(image)
        params = params or WatershedParams()
        processed = prepare_image(image)

        markers, foreground_label = self.build_markers(processed, params)
        if not np.any(markers):
            raise MissingMarkersError("Không có marker hoặc seed hợp lệ cho watershed")

        labels = self.apply_watershed(self._watershed_input(image, processed), markers)

        result = np.zeros(labels.shape, dtype=np.uint8)
        result[labels == foreground_label] = FOREGROUND

        kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (3, 3))
        result = cv2.morphologyEx(result, cv2.MORPH_CLOSE, kernel)

        logger.info(f"Đã phân vùng watershed (biến đổi khoảng cách={params.use_distance_transform}): "
                    f"{int(np.count_nonzero(result))} pixel tiền cảnh")
        return result

    def build_markers(self, processed: np.ndarray, params: WatershedParams) -> Tuple[np.ndarray, int]:
        """
        Tạo ảnh marker int32 cho watershed.

        Args:
            processed: Ảnh grayscale 8-bit
            params: Tham số watershed

        Returns:
            Tuple[np.ndarray, int]: Ảnh marker và nhãn tiền cảnh tương ứng với chế độ
        """
        if params.use_distance_transform:
            return self._distance_transform_markers(processed), DT_FOREGROUND_LABEL

        if not params.foreground_seeds and not params.background_seeds:
            raise MissingMarkersError("Chế độ seed thủ công cần ít nhất một seed tiền cảnh hoặc nền")

        return self._manual_seed_markers(processed.shape, params), MANUAL_FOREGROUND_LABEL

    def _distance_transform_markers(self, processed: np.ndarray) -> np.ndarray:
        _, binary = cv2.threshold(processed, 0, FOREGROUND, cv2.THRESH_BINARY | cv2.THRESH_OTSU)

        # Vùng lõi chắc chắn là tiền cảnh
        distance = cv2.distanceTransform(binary, cv2.DIST_L2, 3)
        distance = cv2.normalize(distance, None, 0, 1.0, cv2.NORM_MINMAX)
        _, foreground = cv2.threshold(distance, DT_FOREGROUND_RATIO, 1.0, cv2.THRESH_BINARY)

        # Dải chắc chắn là nền: ngoài vùng tiền cảnh đã giãn nở
        background = cv2.dilate(binary, None, iterations=BACKGROUND_DILATE_ITERATIONS)
        _, background = cv2.threshold(background, 1, DT_BACKGROUND_LABEL, cv2.THRESH_BINARY_INV)

        markers = background.astype(np.int32)
        markers[foreground > 0] = DT_FOREGROUND_LABEL
        return markers

    def _manual_seed_markers(self, shape: Tuple[int, int], params: WatershedParams) -> np.ndarray:
        height, width = shape
        markers = np.zeros((height, width), dtype=np.int32)

        # Seed tiền cảnh vẽ sau cùng: điểm có trong cả hai danh sách thuộc về tiền cảnh
        for seeds, label in ((list(params.background_seeds), MANUAL_BACKGROUND_LABEL),
                             (list(params.foreground_seeds), MANUAL_FOREGROUND_LABEL)):
            for seed in seeds:
                x, y = _as_point(seed, "Seed watershed")
                if 0 <= x < width and 0 <= y < height:
                    cv2.circle(markers, (x, y), SEED_RADIUS, label, -1)
                else:
                    logger.warning(f"Bỏ qua seed ({x}, {y}) nằm ngoài ảnh {width}x{height}")

        return markers

    @staticmethod
    def _watershed_input(image: np.ndarray, processed: np.ndarray) -> np.ndarray:
        """Ảnh 3 kênh 8-bit cho watershed"""
        if image.ndim == 3 and image.dtype == np.uint8 and image.shape[2] in (3, 4):
            return to_bgr(image)
        return cv2.cvtColor(processed, cv2.COLOR_GRAY2BGR)

    @staticmethod
    def apply_watershed(color_image: np.ndarray, markers: np.ndarray) -> np.ndarray:
        """
        Chạy watershed trên bản sao của marker.

        Returns:
            np.ndarray: Ảnh nhãn mới (-1 trên đường biên), marker đầu vào giữ nguyên
        """
        labels = markers.copy()
        cv2.watershed(color_image, labels)
        return labels

    def post_process(self, mask: np.ndarray) -> np.ndarray:
        """
        Làm sạch mask: mở (loại nhiễu nhỏ) rồi đóng (lấp lỗ nhỏ) với phần tử
        cấu trúc elip 3x3.

        Args:
            mask: Mask đầu vào

        Returns:
            np.ndarray: Mask uint8 một kênh đã làm sạch
        """
        validate_input(mask)

        processed = mask
        if processed.ndim == 3:
            processed = prepare_image(processed)
        processed = to_uint8(processed)

        kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (3, 3))
        processed = cv2.morphologyEx(processed, cv2.MORPH_OPEN, kernel)
        processed = cv2.morphologyEx(processed, cv2.MORPH_CLOSE, kernel)

        return processed

    def get_contours(self, mask: np.ndarray) -> List[List[List[int]]]:
        """
        Trích xuất các đường viền ngoài cùng của vùng tiền cảnh.

        Args:
            mask: Mask nhị phân

        Returns:
            List[List[List[int]]]: Danh sách contour, mỗi contour là danh sách điểm [x, y]
                                   đã được giản lược
        """
        validate_input(mask)
        binary = prepare_image(mask) if mask.ndim == 3 else to_uint8(mask)

        contours, _ = cv2.findContours(binary, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

        return [contour.reshape(-1, 2).tolist() for contour in contours]

    def draw_segmentation(self, image: np.ndarray, mask: np.ndarray, alpha: float = 0.5,
                          color: Sequence[int] = (0, 0, 255)) -> np.ndarray:
        """
        Phủ màu lên vùng được phân vùng.

        Args:
            image: Ảnh gốc
            mask: Mask phân vùng cùng kích thước với ảnh
            alpha: Độ đậm của lớp phủ, bị giới hạn trong [0, 1]
            color: Màu lớp phủ (BGR), mặc định đỏ

        Returns:
            np.ndarray: Ảnh BGR đã phủ màu
        """
        validate_input(image)
        mask_check = validate_mask(mask, image)
        if not mask_check:
            raise InvalidInputError(mask_check.message)

        if not 0.0 <= alpha <= 1.0:
            clamped = min(max(alpha, 0.0), 1.0)
            logger.warning(f"alpha={alpha} nằm ngoài [0, 1], dùng {clamped}")
            alpha = clamped

        result = to_bgr(image)
        overlay = result.copy()
        overlay[mask > 0] = tuple(int(channel) for channel in color)

        return cv2.addWeighted(overlay, alpha, result, 1.0 - alpha, 0)


def segmentation_summary(mask: np.ndarray) -> dict:
    """Thống kê nhanh một mask: kích thước, số pixel tiền cảnh, tỉ lệ và số vùng"""
    foreground = int(np.count_nonzero(mask))
    contours, _ = cv2.findContours(to_uint8(mask), cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    return {
        "shape": [int(mask.shape[0]), int(mask.shape[1])],
        "foreground_pixels": foreground,
        "foreground_ratio": foreground / mask.size if mask.size else 0.0,
        "regions": len(contours),
    }
