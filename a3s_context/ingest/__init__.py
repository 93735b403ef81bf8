"""
Filesystem and text ingestion.
"""

from .processor import IngestResult, Processor, detect_kind

__all__ = ["IngestResult", "Processor", "detect_kind"]
