[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "trojanfork"
version = "0.1.0"
description = "Core of a Trojan-style proxy: configuration loading, option dispatch, connection relaying, traffic recording, geodata lookup and logging."
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["proxy", "trojan", "tunnel", "relay", "geodata", "logging"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
trojanfork = "trojanfork.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["trojanfork"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
