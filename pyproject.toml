[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gonvoy"
version = "0.3.5"
description = "Building blocks for Envoy HTTP filters: handler chaining, local replies, metrics naming, logging and an end-to-end test suite."
requires-python = ">=3.10"
dependencies = []
keywords = ["envoy", "proxy", "http-filter", "middleware", "metrics", "e2e-testing"]
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
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["gonvoy"]

[tool.hatch.build.targets.sdist]
include = ["gonvoy", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
