[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lidarview"
version = "0.1.0"
description = "Decode Velodyne HDL-32 lidar captures into point clouds and view them"
requires-python = ">=3.10"
keywords = ["lidar", "velodyne", "hdl-32", "point cloud", "pcap", "pcd", "visualization"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Visualization",
]
dependencies = [
    "numpy",
    "matplotlib",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
lidarview = "lidarview.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["lidarview"]

[tool.pytest.ini_options]
addopts = "-ra"
