[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "flagbucket"
version = "0.1.0"
description = "Feature-flag bucketing primitives: users, audience filters, targeting, version comparison and event aggregation."
requires-python = ">=3.10"
dependencies = []
keywords = ["feature-flags", "bucketing", "targeting", "segmentation", "audiences", "events"]
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
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["flagbucket"]

[tool.pytest.ini_options]
addopts = "-ra"
