# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""Antigravity Workflows - workflow installer for the Antigravity AI assistant"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="antigravity-workflows",
    version="1.0.0",
    author="harikrishna8121999",
    author_email="",
    description="Install, list, search and inspect workflows from a remote registry",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/harikrishna8121999/antigravity-workflows",
    packages=find_packages(exclude=["tests*"]),
    py_modules=["cli"],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "License :: Other/Proprietary License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: Utilities",
    ],
    python_requires=">=3.10",
    install_requires=[
        "click>=8.1.7",
        "pyyaml>=6.0.1",
        "httpx>=0.25.2",
        "pydantic>=2.5.2",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-asyncio>=0.21.1",
            "pytest-cov>=4.1.0",
            "black>=23.12.1",
            "ruff>=0.1.6",
            "mypy>=1.7.1",
        ],
    },
    entry_points={
        "console_scripts": [
            "antigravity-workflows=cli:cli",
        ],
    },
    zip_safe=False,
    keywords=[
        "workflow",
        "antigravity",
        "registry",
        "installer",
        "cli",
        "ai",
    ],
    project_urls={
        "Bug Reports": "https://github.com/harikrishna8121999/antigravity-workflows/issues",
        "Source": "https://github.com/harikrishna8121999/antigravity-workflows",
    },
)
