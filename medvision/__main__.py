#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""Cho phép chạy MedVision bằng `python -m medvision`"""

import sys

from medvision.main import main

if __name__ == "__main__":
    sys.exit(main())
