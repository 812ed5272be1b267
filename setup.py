# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Setup configuration for the Flow Orchestrator (flow execution and
Champion vs Challenge comparison engine)
"""

from setuptools import setup, find_packages

setup(
    name="flow-orchestrator",
    version="1.0.0",
    description="Flow graph execution and Champion vs Challenge comparison engine",
    author="Jason Cafarelli",
    package_dir={"": "backend"},
    packages=find_packages(where="backend", exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0",
        "httpx>=0.25.0",
        "pyyaml>=6.0",
        "fastapi>=0.100.0",
        "anthropic>=0.40.0",
        "python-dotenv>=1.0.0",
        "uvicorn>=0.23.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ]
    },
)
