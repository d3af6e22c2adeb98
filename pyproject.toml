[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pqgateway"
version = "0.1.0"
description = "Block layout, row-range filtering, local object storage and TSDB block discovery for Parquet-backed time series"
requires-python = ">=3.10"
dependencies = []
keywords = ["parquet", "time series", "metrics", "object storage", "blocks", "row ranges"]
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
    "Topic :: Database",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pqgateway"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
