"""
Clef - a metadata store for cataloged musical works.

Clef keeps composers, eras, work types, source files, works and tags in a
small SQLite schema and answers batch metadata lookups by dataset name and
filename.
"""

__version__ = "1.0.0"
__author__ = "Clef Contributors"

from clef.core.catalog import MetadataCatalog
from clef.core.metadata_db import MetadataDb

__all__ = ["MetadataCatalog", "MetadataDb", "__version__"]
