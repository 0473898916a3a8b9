[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "malairte"
version = "0.2.0"
description = "Consensus building blocks for the Malairt chain: node configuration, chain parameters, compact block filters, signature hashes and P2PKH/P2WPKH verification."
requires-python = ">=3.10"
keywords = [
    "blockchain",
    "cryptocurrency",
    "consensus",
    "bip157",
    "bip158",
    "sighash",
    "taproot",
    "segwit",
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
    "Topic :: Office/Business :: Financial",
    "Topic :: Security :: Cryptography",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "cryptography",
    "pycryptodome",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["malairte"]

[tool.hatch.build.targets.sdist]
include = [
    "malairte",
    "tests",
]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
