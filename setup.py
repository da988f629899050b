"""Setup configuration for bird-atlas package."""

from setuptools import find_packages, setup

# Read version from __version__.py
version = {}
with open("src/python/bird_atlas/__version__.py") as f:
    exec(f.read(), version)

# Read README
with open("README.md", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="bird-atlas",
    version=version["__version__"],
    description="Index a bird photo library by species using a taxonomy list",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Bird Atlas Team",
    python_requires=">=3.11",
    package_dir={"": "src/python"},
    packages=find_packages(where="src/python"),
    install_requires=[
        "pyyaml>=6.0.1",
        "pandas>=2.1.4",
        "openpyxl>=3.1.2",
        "click>=8.1.7",
        "tqdm>=4.66.1",
    ],
    extras_require={
        "dev": [
            "pytest>=8.0.0",
            "pytest-cov>=4.1.0",
            "pytest-mock>=3.12.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "bird-atlas=bird_atlas.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: End Users/Desktop",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Topic :: Multimedia :: Graphics",
    ],
)
