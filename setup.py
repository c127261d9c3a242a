from setuptools import find_packages, setup

setup(
    name="tidyfs",
    version="0.1.0",
    description="Scan, review and clean removable files on Linux.",
    python_requires=">=3.12",
    packages=find_packages(include=("tidyfs", "tidyfs.*")),
    install_requires=[
        "result>=0.17",
        "rich>=13.7",
        "tomli-w>=1.0",
        "typer>=0.12",
    ],
    extras_require={
        "test": ["pytest>=8.0"],
    },
    entry_points={
        "console_scripts": ["tidyfs=tidyfs.cli.app:cli"],
    },
)
