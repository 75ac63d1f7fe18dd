[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kmergraph"
version = "0.1.0"
description = "Parse k-mer graph files into an in-memory directed graph or a memory-mapped on-disk cache with k-mer lookup"
requires-python = ">=3.10"
keywords = ["k-mer", "de bruijn", "graph", "bioinformatics", "mmap", "unitigs"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Bio-Informatics",
]
dependencies = [
    "lz4",
    "networkx",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
kmergraph = "kmergraph.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["kmergraph"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
