#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
MedVision - Xử lý và phân vùng ảnh y tế
=======================================

Các chức năng chính:
- Tải ảnh thông thường và DICOM
- Tiền xử lý ảnh (giảm nhiễu, histogram, CLAHE, làm sắc nét)
- Phát hiện biên, điểm đặc trưng và đặc trưng kết cấu
- Phân vùng ảnh (ngưỡng, Otsu, ngưỡng thích nghi, region growing, watershed)
- Phân tích ảnh X-quang ngực bằng mô hình DNN (tùy chọn)

Phiên bản: 1.0.0
"""

# Biến phiên bản
__version__ = "1.0.0"
__license__ = "MIT"
