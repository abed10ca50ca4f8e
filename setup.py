"""
Setup script for mentora-srs.

Mentora SRS is the spaced-repetition core behind the Mentora study
companion. It decides when each flashcard is next shown and drives the
review-session state machine a learner steps through:

1. Interval Policy - per-grade interval tables
2. Card Store - durable flashcards, atomic grading
3. Review Session - reveal/grade/cancel over a frozen due queue

It is consumed as a library by a presentation layer.
"""

from setuptools import find_namespace_packages, setup

setup(
    name="mentora-srs",
    version="1.0.0",
    description="Spaced-repetition scheduling engine and review-session state machine",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Mentora",
    packages=find_namespace_packages(include=["src", "src.*"], exclude=["*.__pycache__"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # Database
        "sqlalchemy>=2.0.0",
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
        "postgres": [
            "psycopg2-binary>=2.9.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition flashcards education scheduler",
)
