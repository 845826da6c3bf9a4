"""
docmgr setup.py — Package configuration and CLI entry point.
"""

from setuptools import find_packages, setup

setup(
    name="docmgr",
    version="1.0.0",
    description="docmgr — Document management service with folder security codes and activity audit",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "docmgr=docmgr.cli:main",
        ],
    },
    install_requires=[
        "fastapi>=0.110",
        "uvicorn>=0.29",
        "python-multipart>=0.0.9",
        "sqlalchemy>=2.0",
        "psycopg2-binary>=2.9",
        "pydantic>=2.5",
        "redis>=5.0",
        "pyyaml>=6.0",
        "httpx>=0.27",
        "reportlab>=4.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
        ],
    },
)
