"""
Setup script for braindeck.

BrainDeck is a personal Leitner-system flashcard scheduler for the
terminal. It serves three roles:

1. Scheduler Core - Pure level/interval rules over immutable cards
2. Study CLI - Review due cards, track progress, manage the deck
3. Offline Companion - Cached trivia content and a daily reminder loop

The 'braindeck' command is the primary entry point.
"""

from setuptools import find_packages, setup

setup(
    name="braindeck",
    version="1.0.0",
    description="Leitner-system spaced repetition flashcards for the terminal",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="BrainDeck",
    packages=find_packages(include=["braindeck", "braindeck.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "requests>=2.28.0",
        "urllib3>=1.26.0",
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
            "braindeck=braindeck.delivery.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition leitner flashcards cli",
)
