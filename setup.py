"""
Setup script for adaptive-learning-engine.

The adaptive learning engine is the scheduling and remediation core of an
e-learning platform. It serves three roles:

1. Grading - Per-answer correctness and assignment scores
2. Spaced Repetition - SM-2 review scheduling per student and question
3. Remediation - Adaptive follow-up assignments and practice quizzes

The 'learn' command is an operator CLI over the configured database.
"""

from setuptools import find_packages, setup

setup(
    name="adaptive-learning-engine",
    version="1.0.0",
    description="Adaptive learning engine: SM-2 scheduling, grading and adaptive reassignment",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["adaptive_learning", "adaptive_learning.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
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
            "learn=adaptive_learning.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition sm2 adaptive education",
)
