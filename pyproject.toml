[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dslm"
version = "0.1.0"
description = "Device security level management: query, verify and track the security level of peer devices"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "security",
    "device",
    "security-level",
    "credential",
    "state-machine",
    "distributed",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["dslm"]

[tool.hatch.build.targets.sdist]
include = ["dslm", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
