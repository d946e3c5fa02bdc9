"""Cross-object reference extraction."""

from calindex.services.reference_extractor.extractors import EXTRACTORS, extract_references

__all__ = [
    "EXTRACTORS",
    "extract_references",
]
