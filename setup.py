#!/usr/bin/env python3
"""
Setup script for SandboxForge

Install with:
    pip install -e .

With test tooling:
    pip install -e ".[test]"
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_path = Path(__file__).parent / "README.md"
long_description = ""
if readme_path.exists():
    long_description = readme_path.read_text(encoding="utf-8")

# Server dependencies
server_requirements = [
    "fastapi>=0.110.0",
    "uvicorn[standard]>=0.27.0",
    "pydantic>=2.5.0",
    "pydantic-settings>=2.1.0",
    "anyio>=4.0.0",
]

# CLI dependencies
cli_requirements = [
    "httpx>=0.26.0",
    "rich>=13.7.0",
    "python-dotenv>=1.0.0",
]

test_requirements = [
    "pytest>=7.4.0",
    "pytest-asyncio>=0.23.0",
    "faker>=22.0.0",
    "httpx>=0.26.0",
]

setup(
    name="sandboxforge",
    version="1.0.0",
    description="SandboxForge - streams AI-driven project generation running in remote sandboxes",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="SandboxForge Team",
    license="MIT",
    package_dir={"": "backend", "cli": "cli"},
    packages=find_packages(where="backend", exclude=["tests", "tests.*"]) + ["cli"],
    python_requires=">=3.10",
    install_requires=server_requirements + cli_requirements,
    extras_require={
        "cli": cli_requirements,
        "test": test_requirements,
        "dev": test_requirements + [
            "black>=24.1.0",
            "isort>=5.13.0",
            "mypy>=1.8.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "sandboxforge=cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Web Environment",
        "Framework :: FastAPI",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Code Generators",
    ],
    keywords="ai code-generation sandbox sse fastapi",
)
