"""
Setup script for cortex-tutor.

Cortex Tutor is the adaptive dialogue engine behind the Right Learning
tutoring sessions. It serves three roles:

1. Socratic Tutor - Guides learners to discover concepts through questions
2. Inverse Tutor - Learners teach a simulated peer and get teaching feedback
3. Learner Modelling - Folds every dialogue into a persistent learner profile

The 'cortex-tutor' command runs dialogues in the terminal.
"""

from setuptools import find_packages, setup

setup(
    name="cortex-tutor",
    version="1.0.0",
    description="Adaptive Socratic tutoring engine with psychometric learner profiles",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Right Learning",
    url="https://github.com/rightlearning/cortex-cli",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
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
            "cortex-tutor=src.cli.tutor_cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
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
    keywords="tutoring socratic-method learner-model psychometrics cli education",
)
