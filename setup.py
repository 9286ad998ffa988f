"""
Setup script for recall-engine.

Recall Engine is the adaptive review scheduling core of a spaced-repetition
study tool. It provides three components:

1. Item Scheduler - FSRS state machine for each reviewable item
2. Mastery Aggregator - recency-weighted 0-100 score per topic
3. Session Composer - band-weighted, topic-diverse review sessions

The 'recall' command exposes them over a JSON deck file.
"""

from setuptools import find_packages, setup

setup(
    name="recall-engine",
    version="1.0.0",
    description="Adaptive review scheduling engine - spaced repetition, topic mastery, session composition",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "recall=recall_engine.cli:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition fsrs mastery education",
)
