[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "btc-ticker"
version = "0.1.0"
description = "A desktop ticker for Bitcoin price, price charts, block height and fee estimates"
requires-python = ">=3.10"
keywords = ["bitcoin", "ticker", "price", "mempool", "bitstamp", "fees", "chart"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: X11 Applications",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Investment",
]
dependencies = [
    "requests>=2.28",
    "platformdirs>=3.0",
    "matplotlib>=3.6",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[project.scripts]
btc-ticker = "btc_ticker.app:main"

[tool.hatch.build.targets.wheel]
packages = ["btc_ticker"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
