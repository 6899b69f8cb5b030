"""
Correlate package: associate change events with the issues their commits reference.
"""

from .issue_extractor import IssueExtractor, extract_associations
from .properties import PropertyExtractor, RefEventProperties

__all__ = ["IssueExtractor", "extract_associations", "PropertyExtractor", "RefEventProperties"]
