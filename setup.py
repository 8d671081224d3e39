#!/usr/bin/env python3
# =============================================================================
#  lockorder — setup.py
#
#  Runtime dependencies live in requirements.txt; the version lives in
#  lockorder/__init__.py.  Both are read here so there is a single source
#  of truth for each.
#
#      pip install -e ".[dev]"
#      python -m pytest
# =============================================================================

from __future__ import annotations

import re
from pathlib import Path

from setuptools import setup, find_packages

_HERE = Path(__file__).resolve().parent


def _read_version() -> str:
    """Extract ``__version__`` from the package without importing it."""
    init = _HERE / "lockorder" / "__init__.py"
    text = init.read_text(encoding="utf-8")
    match = re.search(r'^__version__\s*=\s*"([^"]+)"', text, re.MULTILINE)
    if match:
        return match.group(1)
    return "0.0.0"


def _read_long_description() -> str:
    readme = _HERE / "README.md"
    if readme.exists():
        return readme.read_text(encoding="utf-8")
    return ""


def _read_requirements() -> list[str]:
    """Read requirements.txt if it exists."""
    req_file = _HERE / "requirements.txt"
    if req_file.exists():
        lines = req_file.read_text(encoding="utf-8").splitlines()
        return [
            ln.strip()
            for ln in lines
            if ln.strip() and not ln.strip().startswith("#")
        ]
    return []


setup(
    name="lockorder-verify",
    version=_read_version(),
    description=(
        "Offline lock-order verification: finds cyclic lock acquisition "
        "orders in recorded lock traces."
    ),
    long_description=_read_long_description(),
    long_description_content_type="text/markdown",
    license="BSD-3-Clause",
    author="lockorder contributors",
    python_requires=">=3.10",
    packages=find_packages(
        include=[
            "lockorder",
            "lockorder.*",
        ],
        exclude=[
            "tests",
            "tests.*",
        ],
    ),
    package_data={
        "lockorder": ["py.typed"],
    },
    install_requires=_read_requirements(),
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "ruff>=0.4",
            "mypy>=1.10",
        ],
    },
    entry_points={
        "console_scripts": [
            "lock-verify=lockorder.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: BSD License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Software Development :: Quality Assurance",
        "Topic :: Software Development :: Debuggers",
        "Typing :: Typed",
    ],
    keywords=[
        "deadlock",
        "lock-order",
        "static-analysis",
        "trace-analysis",
        "concurrency",
    ],
    zip_safe=False,
)
