from setuptools import setup, find_packages

setup(
    name="durastate",
    version="0.1.0",
    description="Durable, crash-recoverable state machine engine for long-running workflows",
    author="durastate Team",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml>=6.0",
        "sqlalchemy>=2.0",
        "click>=8.0",
        "rich>=13.0",
        "filelock>=3.12",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "durastate=durastate.cli:main",
        ],
    },
)
