#!/usr/bin/env python
"""Setup configuration for Offline Sync."""

from setuptools import find_packages, setup

setup(
    name="offline-sync",
    version="0.1.0",
    description="Offline-first video cache with queued mutation sync",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5.0",
        "pydantic-settings>=2.0.0",
        "sqlalchemy[asyncio]>=2.0.23",
        "aiosqlite>=0.19.0",
        "httpx>=0.25.0",
        "structlog>=23.2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
)
