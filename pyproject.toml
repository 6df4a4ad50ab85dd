[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "clashctl"
version = "0.1.0"
description = "Command-line client and library for the Clash proxy RESTful API"
requires-python = ">=3.11"
dependencies = []
keywords = ["clash", "proxy", "cli", "rest", "api"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
clashctl = "clashctl.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["clashctl"]

[tool.pytest.ini_options]
addopts = "-ra"
