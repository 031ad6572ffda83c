# setup.py (place at the repository root, next to GRSIFit/)

from setuptools import setup, find_packages

setup(
    name="grsifit",
    version="0.1.0",
    packages=find_packages(exclude=["tests*", "scripts*", "data*"]),
    install_requires=[
        "numpy",
        "scipy",
        "matplotlib",
        "lmfit",
        "pandas",
        "pyyaml",
    ],
    extras_require={
        "dev": [
            "pytest",
            "pytest-cov",
        ]
    }
)
