"""Setup configuration for the Heimdall Discord bot."""

from setuptools import setup, find_packages

setup(
    name="heimdall",
    version="0.1.0",
    description="A Discord automod rule engine with an infraction points ledger and escalation tiers",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.6",
        "aiosqlite>=0.20",
        "PyYAML>=6.0",
        "prompt_toolkit>=3.0",
        "python-dotenv>=1.0",
        "regex>=2024.5.15",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "heimdall=heimdall.main:main",
        ],
    },
)
