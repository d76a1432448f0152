[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mcumgr"
version = "0.1.0"
description = "Server side of a device management protocol: SMP and OMP request processing with OS, shell and statistics command groups"
requires-python = ">=3.10"
dependencies = [
    "cbor2",
]
keywords = ["mcumgr", "smp", "omp", "cbor", "device management", "embedded"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["mcumgr"]

[tool.pytest.ini_options]
addopts = "-ra"
