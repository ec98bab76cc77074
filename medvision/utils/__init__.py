#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Các tiện ích dùng chung: cấu hình, ghi log và xác thực dữ liệu.
"""
