#!/usr/bin/env python3
"""
Setup script for docroute.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

# Read requirements
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
if requirements_file.exists():
    requirements = [
        line.strip()
        for line in requirements_file.read_text().splitlines()
        if line.strip() and not line.startswith("#")
    ]

setup(
    name="docroute",
    version="0.1.0",
    description="Declarative controllers materialized into Starlette routers and OpenAPI documents",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="docroute Contributors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"docroute": ["templates/*.html"]},
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=requirements + [
        "uvicorn>=0.30.0",
        "python-dotenv>=1.0.0",
        "jinja2>=3.1.0",
        "click>=8.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "httpx>=0.24.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "docroute=docroute.cli.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Software Development :: Documentation",
    ],
    keywords="openapi swagger starlette pydantic controllers routing",
)
