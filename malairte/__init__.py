"""Malairt chain building blocks: configuration, parameters, block filters, sighashes and P2PKH/P2WPKH checks."""

__version__ = "0.2.0"