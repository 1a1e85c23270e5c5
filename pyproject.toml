[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tradecore"
version = "0.1.0"
description = "Order matching engine, order book depth, K-line aggregation and small helpers for trading systems"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "trading",
    "matching engine",
    "order book",
    "exchange",
    "kline",
    "candlestick",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Financial and Insurance Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Investment",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tradecore"]

[tool.hatch.build.targets.sdist]
include = ["tradecore", "tests"]

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
