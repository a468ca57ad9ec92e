#!/usr/bin/env python
# Copyright (C) 2021-2025 IGM authors
# Published under the GNU GPL (Version 3)

from setuptools import setup, find_packages


with open("README.md", "r") as f:
    readme = f.read()

setup(
    name="icegeom",
    version="0.1.0",
    license="gpl-3.0",
    packages=find_packages(include=["icegeom", "icegeom.*"]),
    package_data={"icegeom": ["conf/*.yaml", "conf/processes/*.yaml"]},
    description="icegeom - explicit ice geometry update on a tiled grid",
    long_description=readme,
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    install_requires=[
        "tensorflow",
        "numpy",
        "omegaconf",
        "tqdm",
        "matplotlib",
    ],
    extras_require={"test": ["pytest"]},
)
