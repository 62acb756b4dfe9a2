[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bdindexer"
version = "0.1.0"
description = "Validator storage on SQLite and a JSON-over-HTTP query actions service for a Cosmos SDK chain indexer"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = [
    "cosmos",
    "blockchain",
    "indexer",
    "staking",
    "validators",
    "sqlite",
    "actions",
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
    "Topic :: Database :: Front-Ends",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["bdindexer"]

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
warn_redundant_casts = true
