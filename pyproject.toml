[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "torrentkit"
version = "0.1.0"
description = "BitTorrent building blocks: bitfields, blocklists, magnet links, metainfo, message stream encryption and peer handshakes"
requires-python = ">=3.10"
dependencies = []
keywords = ["bittorrent", "torrent", "magnet", "bencode", "mse", "peer-to-peer"]
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
    "Topic :: Communications :: File Sharing",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["torrentkit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
