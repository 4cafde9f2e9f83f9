# setup.py

from setuptools import setup, find_packages

setup(
    name="peakfit",
    version="0.1.0",
    description="Peak-model composition and fitting for energy spectra",
    packages=find_packages(exclude=["tests*", "data*"]),
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "matplotlib",
        "scipy",
        "lmfit",
    ],
    extras_require={
        "dev": [
            "pytest",
            "pytest-cov",
        ]
    }
)
