[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dnscollector"
version = "0.1.0"
description = "DNS message model, strict DNS/EDNS wire-format decoding and YAML configuration for DNS traffic collection"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["dns", "edns", "wire-format", "parser", "configuration", "logging"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Name Service (DNS)",
    "Topic :: System :: Logging",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["dnscollector"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
