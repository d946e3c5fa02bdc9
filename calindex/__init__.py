"""Parsing and indexing engine for C/AL object text exports."""

__version__ = "0.1.0"
