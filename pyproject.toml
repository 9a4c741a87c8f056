[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mipscache"
version = "0.1.0"
description = "MIPS processor simulator with single-cycle and pipelined cores and configurable write-back caches"
requires-python = ">=3.10"
dependencies = []
keywords = ["mips", "simulator", "emulator", "cache", "pipeline", "branch-prediction", "computer-architecture"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
mipscache = "mipscache.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["mipscache"]

[tool.pytest.ini_options]
addopts = "-ra"
