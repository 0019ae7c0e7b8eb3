"""Notes hierarchy, lifecycle, versioning and hybrid search service."""

__version__ = "0.1.0"
