[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dnetkit"
version = "0.1.0"
description = "Building blocks of a small darknet-style neural network toolkit: images, pooling and segmentation layers, configuration options and weight files"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["neural-network", "darknet", "image-processing", "maxpool", "im2col", "weights"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
    "Topic :: Scientific/Engineering :: Image Processing",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["dnetkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
