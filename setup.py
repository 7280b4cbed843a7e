# setup.py

from setuptools import setup, find_packages

setup(
    name="PhotonicBandSim",
    version="1.0.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "scipy",
        "PyYAML",
        "h5py",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "photonicbandsim=photonicbandsim.cli.run:main",
        ],
    },
)
