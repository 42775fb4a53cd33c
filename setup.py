"""
Setup file.
"""

from setuptools import find_packages, setup

NAME = "makegen"
VERSION = "0.1.0"
KEYWORDS = "makefile generator mingw build toolchain reactos"


if __name__ == "__main__":
    setup(
        name=NAME,
        version=VERSION,
        description="Makefile generator for mingw project builds",
        keywords=KEYWORDS,
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        python_requires=">=3.9",
        install_requires=[],
        extras_require={"test": ["pytest>=7.0"]},
        entry_points={"console_scripts": ["makegen=makegen.cli:main"]},
        include_package_data=True)
