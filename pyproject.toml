[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "newsnode"
version = "0.1.0"
description = "Building blocks for a peer-to-peer news node: subscription filtering, sync status, LAN bootstrap addresses and node health summaries."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "news",
    "peer-to-peer",
    "subscriptions",
    "bittorrent",
    "libp2p",
    "bootstrap",
]
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
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content :: News/Diary",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["newsnode"]

[tool.hatch.build.targets.sdist]
include = ["newsnode", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
