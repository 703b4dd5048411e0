[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "alertflow"
version = "0.1.0"
description = "Alert rule evaluation, grouping, muting and notification dispatch for monitoring systems"
requires-python = ">=3.10"
keywords = ["alerting", "monitoring", "probing", "notifications", "silences"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["alertflow"]

[tool.pytest.ini_options]
addopts = "-ra"
