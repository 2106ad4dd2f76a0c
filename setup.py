#!/usr/bin/env python3
"""
Setup configuration for the Rental Recommendation Engine
"""

from setuptools import setup, find_packages

# Read the contents of README file
from pathlib import Path
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

setup(
    name="rental-recommender",
    version="1.0.0",
    author="Rental Recommender Team",
    description="Product recommendations for a goods-rental platform: collaborative filtering over implicit rental ratings, content similarity and popularity fallback",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["rental_recommender", "rental_recommender.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: Scientific/Engineering :: Information Analysis",
    ],
    python_requires=">=3.9",
    install_requires=[
        # Core Dependencies
        "numpy>=1.24.0",
        "pandas>=2.0.0",

        # Storage & Databases
        "sqlalchemy[asyncio]>=2.0.0",
        "asyncpg>=0.28.0",
        "redis>=5.0.1",

        # Caching & Performance
        "cachetools>=5.3.0",
        "orjson>=3.9.0",

        # Utilities
        "click>=8.1.0",
        "rich>=13.4.0",
        "tenacity>=8.2.0",

        # Configuration
        "pyyaml>=6.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "rental-recommender=rental_recommender.cli:main",
        ],
    },
    zip_safe=False,
    keywords="recommendation-engine collaborative-filtering content-based rental pearson",
)
