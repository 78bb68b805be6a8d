[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rollnode"
version = "0.1.0"
description = "Tendermint-compatible JSON-RPC, REST and WebSocket front end for a rollup node, with peer-list parsing and P2P metrics"
requires-python = ">=3.10"
keywords = [
    "json-rpc",
    "rpc",
    "websocket",
    "rollup",
    "tendermint",
    "cometbft",
    "aiohttp",
    "p2p",
    "multiaddr",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: System :: Distributed Computing",
]
dependencies = [
    "aiohttp>=3.9",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
]

[tool.hatch.build.targets.wheel]
packages = ["rollnode"]

[tool.hatch.build.targets.sdist]
include = [
    "rollnode",
    "tests",
    "pyproject.toml",
]

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
