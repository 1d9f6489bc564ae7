[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "safetyrag"
version = "0.1.0"
description = "Local hashed embeddings, hybrid retrieval and ranking-quality metrics for a chunked safety-standard corpus in SQLite"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "retrieval",
    "embeddings",
    "evaluation",
    "ndcg",
    "reciprocal-rank-fusion",
    "sqlite",
    "indexing",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Text Processing :: Indexing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["safetyrag"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
