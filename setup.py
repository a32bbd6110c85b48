"""
Setup script for ideaforge.

IdeaForge generates business ideas with an AI provider, scores them against
weighted criteria and flags near-duplicates of earlier ideas. Generation runs
in a bounded pool of concurrent slots with live, per-session progress logs.

The 'ideaforge' command is the primary entry point.
"""

from setuptools import find_packages, setup

setup(
    name="ideaforge",
    version="1.0.0",
    description="Concurrent AI idea generation with weighted scoring and semantic duplicate detection",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="IdeaForge",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # AI providers
        "anthropic>=0.40.0,<1",
        "google-generativeai>=0.8.0",
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
        # Embeddings & similarity
        "numpy>=1.24.0",
        "sentence-transformers>=2.2.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ideaforge=ideaforge.cli.main:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="ai idea-generation scoring embeddings asyncio cli",
)
