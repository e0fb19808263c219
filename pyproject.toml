[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tbcexplorer"
version = "0.1.0"
description = "Clients for a TBC block explorer: node JSON-RPC, pooled ElectrumX, MEXC tickers and block request handlers"
requires-python = ">=3.10"
dependencies = [
    "requests",
]
keywords = [
    "tbc",
    "blockchain",
    "explorer",
    "electrumx",
    "json-rpc",
    "mexc",
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
    "Topic :: Internet",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["tbcexplorer"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
