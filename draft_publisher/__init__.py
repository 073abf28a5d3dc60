"""
Draft Publisher - turns free-form drafts into published MDX content.

Scans a draft for media and link references, uploads new media to the
configured storage backends, asks an AI model for structured metadata and
article content, validates everything, and writes the finished article.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
