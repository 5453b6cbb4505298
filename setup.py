#! /usr/bin/env python
# Copyright 2014-2023 Peter Williams <peter@newton.cx> and collaborators.
# Licensed under the MIT License.

from setuptools import setup


def get_long_desc():
    in_preamble = True
    lines = []

    with open("README.md", "rt", encoding="utf8") as f:
        for line in f:
            if in_preamble:
                if line.startswith("<!--pypi-begin-->"):
                    in_preamble = False
            else:
                if line.startswith("<!--pypi-end-->"):
                    break
                else:
                    lines.append(line)

    return "".join(lines)


setup(
    name="lmfitter",
    version="0.1.0",  # also edit lmfitter/__init__.py!
    zip_safe=False,
    packages=[
        "lmfitter",
    ],
    # Numpy does all of the heavy lifting. Scipy only supplies the χ²
    # distribution used for fit probabilities, and is imported lazily.
    install_requires=[
        "numpy >= 1.17",
        "scipy",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    python_requires=">=3.7",
    author="Peter Williams",
    author_email="peter@newton.cx",
    description="Levenberg-Marquardt nonlinear least-squares fitting of sampled data",
    license="MIT",
    keywords="least-squares fitting levenberg-marquardt science",
    long_description=get_long_desc(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Mathematics",
    ],
)
