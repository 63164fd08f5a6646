"""
Setup script for competitor_pricing_engine package.
"""

from setuptools import setup, find_packages

setup(
    name="competitor-pricing-engine",
    version="2.0.0",
    description="Moteur de pricing concurrentiel : collecte marketplaces, statistiques marché et décision de prix",
    author="PricEye Team",
    packages=find_packages(),
    install_requires=[
        "aiohttp>=3.9.0",
        "supabase>=2.0.0",
        "pandas>=2.0.0",
        "numpy>=1.24.0",
        "python-dotenv>=1.0.0",
        "beautifulsoup4>=4.12.0",
        "soupsieve>=2.5",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "refresh-competitors=competitor_pipeline.jobs.refresh_competitors:main",
            "pricing-engine-server=pricing_engine.server:main",
        ],
    },
    python_requires=">=3.9",
)
