from setuptools import setup, find_packages

setup(
    name="hoops-ratings",
    version="0.1.0",
    description="Box-score ingestion and raw efficiency ratings for college basketball divisions",
    author="Ben Rosen",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.22.4",
        "pandas>=1.5.3",
        "requests>=2.31.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "hoops-ratings=hoops_ratings.main:main",
        ],
    },
)
