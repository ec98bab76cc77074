from setuptools import setup, find_packages

# Đọc các dependencies từ requirements.txt
with open('requirements.txt') as f:
    requirements = [line.strip() for line in f.read().splitlines()
                    if line.strip() and not line.startswith('#')]

# Đọc mô tả dài từ README.md
with open('README.md', 'r', encoding='utf-8') as f:
    long_description = f.read()

setup(
    name="medvision",
    version="1.0.0",
    description="Công cụ xử lý và phân vùng ảnh y tế",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["medvision", "medvision.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Topic :: Scientific/Engineering :: Medical Science Apps.",
        "Topic :: Scientific/Engineering :: Image Processing",
    ],
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0", "scipy>=1.7"],
    },
    entry_points={
        "console_scripts": [
            "medvision=medvision.main:main",
        ],
    },
)
