[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "whereabouts"
version = "0.1.0"
description = "IP address management for shared ranges: range arithmetic, allocation, CNI results and pool consistency checks"
requires-python = ">=3.10"
dependencies = []
keywords = ["ipam", "cni", "ip-address", "allocation", "kubernetes", "networking"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["whereabouts"]

[tool.hatch.build.targets.sdist]
include = ["whereabouts", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
