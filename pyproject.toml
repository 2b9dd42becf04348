[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "oceaneye"
version = "0.2.0"
description = "Annotate underwater imagery: manage project media, slice videos, decode YOLO detections, edit bounding boxes and export annotations."
requires-python = ">=3.10"
keywords = [
    "annotation",
    "object-detection",
    "yolo",
    "marine-biology",
    "coco",
    "video-slicing",
]
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
    "Topic :: Scientific/Engineering :: Image Recognition",
]
dependencies = [
    "pyyaml>=6.0",
    "numpy>=1.23",
    "pillow>=9.1",
    "imageio>=2.22",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
oceaneye = "oceaneye.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["oceaneye"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
