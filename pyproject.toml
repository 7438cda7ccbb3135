[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "scanpilot"
version = "0.1.0"
description = "Scan bookkeeping, interactive cancellation and adaptive request-rate tuning for content-discovery scanners"
requires-python = ">=3.10"
dependencies = []
keywords = ["scanner", "content-discovery", "rate-limiting", "auto-tune", "token-bucket"]
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
    "Framework :: AsyncIO",
    "Topic :: Internet :: WWW/HTTP",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[tool.hatch.build.targets.wheel]
packages = ["scanpilot"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
