#!/usr/bin/env python
"""Setup configuration for Ignis Patient Auth."""

from setuptools import find_packages, setup

setup(
    name="ignis-patient-auth",
    version="0.1.0",
    description="Progressive multi-channel patient authentication on a FHIR store",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.104.1",
        "uvicorn[standard]>=0.24.0",
        "pydantic>=2.5.0",
        "fhirclient>=4.1.0",
        "httpx>=0.25.0",
        "python-jose[cryptography]>=3.3.0",
        "pydantic-settings>=2.0.0",
        "structlog>=23.2.0",
        "prometheus-client>=0.19.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.25.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ignis-auth=ignis_auth.main:main",
        ],
    },
)
