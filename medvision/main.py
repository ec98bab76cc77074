#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Điểm vào dòng lệnh của MedVision.

Các lệnh con:
    preprocess  Tiền xử lý ảnh (giảm nhiễu, cân bằng histogram, CLAHE, làm sắc nét)
    segment     Phân vùng ảnh và lưu mask
    features    Phát hiện biên, điểm đặc trưng và đặc trưng kết cấu
    analyze     Phân tích ảnh X-quang ngực bằng mô hình DNN
"""

import argparse
import json
import logging
import sys

from medvision import __version__
from medvision.analysis.chest_xray_analyzer import ChestXRayAnalyzer, ModelConfig
from medvision.core.errors import MedVisionError
from medvision.image_processing.display import create_comparison_view, overlay_edges
from medvision.image_processing.feature_detector import (
    EdgeDetector,
    EdgeParams,
    FeatureDetector,
    KeypointDetector,
    KeypointParams,
)
from medvision.image_processing.image_loader import ImageLoader
from medvision.image_processing.preprocessor import HistogramMethod, ImagePreprocessor
from medvision.image_processing.segmentation import Segmentation, prepare_image, segmentation_summary
from medvision.image_processing.segmentation_params import Method, params_from_config
from medvision.utils.config import GlobalConfig, get_config
from medvision.utils.logging import (
    get_logger,
    log_system_info,
    reload_logging_config,
    set_global_level,
    setup_exception_logging,
)

logger = get_logger("Main")


def parse_point(text: str):
    """Chuyển chuỗi "x,y" thành điểm (x, y) cho argparse"""
    try:
        x, y = (int(part.strip()) for part in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"điểm không hợp lệ: {text!r}, cần dạng x,y")
    return x, y


def build_parser() -> argparse.ArgumentParser:
    """
    Tạo bộ phân tích tham số dòng lệnh

    Returns:
        argparse.ArgumentParser: Bộ phân tích tham số
    """
    parser = argparse.ArgumentParser(prog='medvision',
                                     description='MedVision - Xử lý và phân vùng ảnh y tế')

    # Các tham số chung
    parser.add_argument('--version', action='store_true', help='Hiển thị phiên bản và thoát')
    parser.add_argument('--debug', action='store_true', help='Chạy ở chế độ debug (chi tiết)')
    parser.add_argument('--quiet', action='store_true', help='Chạy ở chế độ yên lặng (chỉ hiện lỗi)')
    parser.add_argument('--config', type=str, help='Đường dẫn đến file cấu hình bổ sung')

    subparsers = parser.add_subparsers(dest='command')

    preprocess = subparsers.add_parser('preprocess', help='Tiền xử lý ảnh')
    preprocess.add_argument('input', help='Ảnh đầu vào')
    preprocess.add_argument('-o', '--output', required=True, help='Ảnh đầu ra')
    preprocess.add_argument('--denoise', choices=['gaussian', 'median', 'bilateral', 'nlm'],
                            help='Phương pháp giảm nhiễu')
    preprocess.add_argument('--equalize', action='store_true', help='Cân bằng histogram')
    preprocess.add_argument('--clahe', action='store_true', help='Áp dụng CLAHE')
    preprocess.add_argument('--sharpen', type=float, metavar='STRENGTH', help='Làm sắc nét với cường độ cho trước')
    preprocess.add_argument('--histogram', metavar='PATH', help='Lưu ảnh histogram')
    preprocess.add_argument('--compare', metavar='PATH', help='Lưu ảnh so sánh trước/sau')

    segment = subparsers.add_parser('segment', help='Phân vùng ảnh')
    segment.add_argument('input', help='Ảnh đầu vào')
    segment.add_argument('-o', '--output', required=True, help='File mask đầu ra')
    segment.add_argument('--method', required=True, choices=[method.value for method in Method],
                         help='Phương pháp phân vùng')
    segment.add_argument('--threshold', type=float, help='Ngưỡng (threshold) hoặc chênh lệch cường độ (region-growing)')
    segment.add_argument('--max-value', type=float, help='Giá trị tiền cảnh')
    segment.add_argument('--invert', action='store_true', help='Đảo màu kết quả ngưỡng')
    segment.add_argument('--block-size', type=int, help='Kích thước khối ngưỡng thích nghi (số lẻ >= 3)')
    segment.add_argument('--c', type=float, dest='c', help='Hằng số C của ngưỡng thích nghi')
    segment.add_argument('--seed', type=parse_point, action='append', default=[], metavar='X,Y',
                         help='Điểm seed cho region growing (có thể lặp lại)')
    segment.add_argument('--connectivity', type=int, choices=[4, 8], help='Độ liên thông cho region growing')
    segment.add_argument('--fg-seed', type=parse_point, action='append', default=[], metavar='X,Y',
                         help='Seed tiền cảnh cho watershed')
    segment.add_argument('--bg-seed', type=parse_point, action='append', default=[], metavar='X,Y',
                         help='Seed nền cho watershed')
    segment.add_argument('--manual-seeds', action='store_true',
                         help='Watershed dùng seed thủ công thay vì biến đổi khoảng cách')
    segment.add_argument('--overlay', metavar='PATH', help='Lưu ảnh phủ mask lên ảnh gốc')
    segment.add_argument('--alpha', type=float, help='Độ đậm lớp phủ')

    features = subparsers.add_parser('features', help='Phát hiện đặc trưng')
    features.add_argument('input', help='Ảnh đầu vào')
    features.add_argument('-o', '--output', required=True, help='Ảnh đầu ra')
    features.add_argument('--edges', choices=[detector.value for detector in EdgeDetector],
                          help='Bộ phát hiện biên')
    features.add_argument('--keypoints', choices=[detector.value for detector in KeypointDetector],
                          help='Bộ phát hiện điểm đặc trưng')
    features.add_argument('--max-keypoints', type=int, help='Số điểm đặc trưng tối đa')
    features.add_argument('--texture', action='store_true', help='Tính đặc trưng kết cấu GLCM')

    analyze = subparsers.add_parser('analyze', help='Phân tích ảnh X-quang ngực')
    analyze.add_argument('input', help='Ảnh đầu vào')
    analyze.add_argument('--model', required=True, help='File mô hình')
    analyze.add_argument('--model-config', default='', help='File cấu hình mô hình')
    analyze.add_argument('--confidence', type=float, help='Ngưỡng tin cậy')

    return parser


def run_preprocess(args) -> int:
    loader = ImageLoader()
    image = loader.load_image(args.input)
    preprocessor = ImagePreprocessor(image)

    if args.denoise == 'gaussian':
        preprocessor.gaussian_blur(get_config("preprocessing.gaussian_kernel", 3),
                                   get_config("preprocessing.gaussian_sigma", 1.0))
    elif args.denoise == 'median':
        preprocessor.median_blur(get_config("preprocessing.median_kernel", 3))
    elif args.denoise == 'bilateral':
        preprocessor.bilateral_filter(get_config("preprocessing.bilateral_diameter", 9),
                                      get_config("preprocessing.bilateral_sigma_color", 75),
                                      get_config("preprocessing.bilateral_sigma_space", 75))
    elif args.denoise == 'nlm':
        preprocessor.non_local_means(get_config("preprocessing.nlm_h", 3.0),
                                     get_config("preprocessing.nlm_template_window", 7),
                                     get_config("preprocessing.nlm_search_window", 21))

    if args.equalize:
        preprocessor.histogram_processing(HistogramMethod.EQUALIZATION)

    if args.clahe:
        preprocessor.clahe(get_config("preprocessing.clahe_clip_limit", 2.0),
                           tuple(get_config("preprocessing.clahe_tile_grid", [8, 8])))

    if args.sharpen is not None:
        preprocessor.sharpen(args.sharpen)

    result = preprocessor.get_image()
    loader.save_image(args.output, result)

    if args.histogram:
        loader.save_image(args.histogram, preprocessor.get_histogram())

    if args.compare:
        view = create_comparison_view(preprocessor.get_original_image(), result,
                                      screen_size=tuple(get_config("display.comparison_size", [1280, 1024])))
        loader.save_image(args.compare, view)

    print(json.dumps({"output": args.output, "type": preprocessor.get_image_type(),
                      "size": list(preprocessor.get_image_size())}, ensure_ascii=False))
    return 0


def run_segment(args) -> int:
    loader = ImageLoader()
    image = loader.load_image(args.input)
    method = Method(args.method)

    if method == Method.THRESHOLD:
        params = params_from_config(method, threshold=args.threshold, max_value=args.max_value,
                                    invert_colors=args.invert or None)
    elif method in (Method.ADAPTIVE_MEAN, Method.ADAPTIVE_GAUSSIAN):
        params = params_from_config(method, block_size=args.block_size, C=args.c, max_value=args.max_value,
                                    invert_colors=args.invert or None)
    elif method == Method.REGION_GROWING:
        params = params_from_config(method, seeds=args.seed, threshold=args.threshold,
                                    connectivity=args.connectivity)
    elif method == Method.WATERSHED:
        params = params_from_config(method, use_distance_transform=False if args.manual_seeds else None,
                                    foreground_seeds=args.fg_seed, background_seeds=args.bg_seed)
    else:
        params = params_from_config(method)

    segmentation = Segmentation()
    mask = segmentation.segment(image, method, params)
    loader.save_image(args.output, mask)

    if args.overlay:
        alpha = args.alpha if args.alpha is not None else get_config("segmentation.overlay_alpha", 0.5)
        color = tuple(get_config("segmentation.overlay_color", [0, 0, 255]))
        loader.save_image(args.overlay, segmentation.draw_segmentation(image, mask, alpha=alpha, color=color))

    summary = segmentation_summary(mask)
    summary.update({"method": method.value, "output": args.output})
    print(json.dumps(summary, ensure_ascii=False))
    return 0


def run_features(args) -> int:
    loader = ImageLoader()
    image = loader.load_image(args.input)
    detector = FeatureDetector()
    summary = {"output": args.output}

    edge_method = args.edges
    if edge_method is None and args.keypoints is None:
        edge_method = EdgeDetector.CANNY.value

    output = None
    if edge_method:
        edge_params = EdgeParams(
            threshold1=get_config("features.canny_threshold1", 100),
            threshold2=get_config("features.canny_threshold2", 200),
            aperture_size=get_config("features.aperture_size", 3),
            l2_gradient=get_config("features.l2_gradient", False),
        )
        output = detector.detect_edges(image, EdgeDetector(edge_method), edge_params)
        summary["edge_pixels"] = int((output > 0).sum())

    if args.keypoints:
        keypoint_params = KeypointParams(
            max_keypoints=args.max_keypoints or get_config("features.max_keypoints", 1000),
            scale_factor=get_config("features.orb_scale_factor", 1.2),
            n_levels=get_config("features.orb_n_levels", 8),
            edge_threshold=get_config("features.orb_edge_threshold", 31),
            fast_threshold=get_config("features.fast_threshold", 20),
        )
        keypoints = detector.detect_keypoints(image, KeypointDetector(args.keypoints), keypoint_params)
        base = overlay_edges(image, output) if output is not None else image
        output = detector.draw_keypoints(base, keypoints)
        summary["keypoints"] = len(keypoints)

    loader.save_image(args.output, output)

    if args.texture:
        contrast, correlation, energy, homogeneity = detector.extract_texture_features(image)
        summary["texture"] = {"contrast": contrast, "correlation": correlation,
                              "energy": energy, "homogeneity": homogeneity}

    print(json.dumps(summary, ensure_ascii=False))
    return 0


def run_analyze(args) -> int:
    image = prepare_image(ImageLoader().load_image(args.input))

    config = ModelConfig(
        model_path=args.model,
        config_path=args.model_config,
        input_size=tuple(get_config("analysis.input_size", [224, 224])),
        confidence_threshold=get_config("analysis.confidence_threshold", 0.5),
        use_gpu=get_config("analysis.use_gpu", False),
        generate_heatmaps=get_config("analysis.generate_heatmaps", False),
    )

    analyzer = ChestXRayAnalyzer()
    analyzer.load_model(config)
    if args.confidence is not None:
        analyzer.set_confidence_threshold(args.confidence)

    result = analyzer.analyze(image)
    if not result.success:
        logger.error(f"Phân tích thất bại: {result.error_message}")
        print(f"Lỗi: {result.error_message}", file=sys.stderr)
        return 1

    print(json.dumps({
        "processing_time": result.processing_time,
        "detections": [{"pathology": d.pathology, "confidence": d.confidence} for d in result.detections],
    }, ensure_ascii=False))
    return 0


COMMANDS = {
    'preprocess': run_preprocess,
    'segment': run_segment,
    'features': run_features,
    'analyze': run_analyze,
}


def main(argv=None) -> int:
    """
    Hàm chính của giao diện dòng lệnh

    Args:
        argv: Danh sách tham số (mặc định lấy từ sys.argv)

    Returns:
        int: Mã thoát (0 thành công, 1 lỗi xử lý, 2 lỗi cú pháp lệnh)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"MedVision - Version {__version__}")
        return 0

    if args.command is None:
        parser.print_help(sys.stderr)
        return 2

    # Cấu hình bổ sung phải được nạp trước khi dựng lại handler của logger
    if args.config:
        if not GlobalConfig().load_file(args.config):
            print(f"Lỗi: không đọc được file cấu hình {args.config}", file=sys.stderr)
            return 1
        reload_logging_config()

    setup_exception_logging()

    if args.debug:
        set_global_level(logging.DEBUG)
        log_system_info()
    elif args.quiet:
        set_global_level(logging.ERROR)

    try:
        return COMMANDS[args.command](args)
    except (MedVisionError, FileNotFoundError) as error:
        logger.error(f"Lệnh {args.command} thất bại: {error}")
        print(f"Lỗi: {error}", file=sys.stderr)
        if args.debug:
            logger.exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
