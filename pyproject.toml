[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wingkit"
version = "0.1.0"
description = "Game server configuration file rewriting and a client for the panel's remote API"
requires-python = ">=3.10"
keywords = ["game-server", "configuration", "panel", "daemon", "yaml", "ini", "properties", "xml"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "requests>=2.28",
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.22",
]

[tool.hatch.build.targets.wheel]
packages = ["wingkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
