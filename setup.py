#!/usr/bin/env python
"""
Order Stream Cache Setup
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

TEST_REQUIREMENTS = [
    "pytest>=7.4.0",
    "pytest-asyncio>=0.23.0",
    "aiosqlite>=0.19.0",
    "httpx>=0.26.0",
]

setup(
    name="orderstream-cache",
    version="1.0.0",
    description="Stream-fed order store with a restart-safe in-memory cache",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["orderstream", "orderstream.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Framework :: FastAPI",
        "Topic :: Database",
    ],
    python_requires=">=3.11",
    install_requires=requirements,
    extras_require={
        "test": TEST_REQUIREMENTS,
        "dev": TEST_REQUIREMENTS + [
            "pytest-cov>=4.1.0",
            "ruff>=0.1.0",
            "mypy>=1.5.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "orderstream-server=orderstream.main:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
    keywords=[
        "orders",
        "cache",
        "fastapi",
        "postgresql",
        "kafka",
    ],
)
