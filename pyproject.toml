[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "yace"
version = "0.1.0"
description = "Core building blocks of a CloudWatch metrics exporter: resource association, query building and Prometheus conversion"
requires-python = ">=3.10"
dependencies = []
keywords = ["cloudwatch", "prometheus", "exporter", "metrics", "monitoring"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["yace"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
