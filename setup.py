"""
Setup script for tiny-moments.
"""

from setuptools import find_packages, setup

setup(
    name="tiny-moments",
    version="0.1.0",
    description="Exact and Count-Sketch estimation of the second frequency moment",
    packages=find_packages(include=["tiny_moments", "tiny_moments.*"]),
    package_data={"tiny_moments": ["py.typed"]},
    python_requires=">=3.8",
    extras_require={"test": ["pytest"]},
)
