#!/usr/bin/env python
"""Setup configuration for the FHIR validation service."""

from setuptools import find_packages, setup

setup(
    name="fhir-validation-service",
    version="0.1.0",
    packages=find_packages(include=["src", "src.*"]),
    package_data={
        "src.validation": ["messages/*.json", "definitions/*.json"],
    },
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.104.1",
        "uvicorn[standard]>=0.24.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.0.0",
        "structlog>=23.2.0",
        "fhirclient>=4.1.0,<5",
        "httpx>=0.25.0",
    ],
    extras_require={
        "test": ["pytest>=7.4.0"],
    },
    entry_points={
        "console_scripts": [
            "fhir-validation-service=src.main:main",
        ],
    },
)
