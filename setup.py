"""
Setup script for idwheat package
Inverse-distance-weighted heatmap layer rendered with moderngl
"""
from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="idwheat",
    version="0.1.0",
    description="GPU inverse-distance-weighted heatmap layer for moderngl map hosts",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: GIS",
        "Topic :: Scientific/Engineering :: Visualization",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10",
    install_requires=[
        # Core scientific stack
        "numpy>=1.20",
        # Geospatial
        "shapely>=1.7,<3.0",
        "pyproj>=3.0,<4.0",
        # OpenGL rendering
        "moderngl>=5.8,<6.0",
    ],
    extras_require={
        "viewer": [
            "moderngl-window>=3.0,<4.0",
            "pygame>=2.6,<3.0",
            "pillow>=10.0",
            "geopandas>=0.9",
        ],
        "dev": [
            "black>=22.0",
            "isort>=5.0",
            "pytest>=7.0",
            "pytest-cov>=3.0",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
