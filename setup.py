"""
Setup script for the Voice Companion engine.
"""

from setuptools import find_packages
from setuptools import setup

setup(
    name="voice-companion",
    version="1.0.0",
    description="Autonomous voice conversation engine with interruptible replies and page actions",
    author="AI Team",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "pydantic>=2.8.0",
        "httpx>=0.27.0",
        "platformdirs>=4.0.0",
        "pyyaml>=6.0.1",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "browser": [
            "playwright>=1.40.0",
        ],
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "voice-companion=voice_companion.cli.console:main",
        ],
    },
)
