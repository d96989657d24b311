"""
Media Processing Layer.

This package is responsible for everything between a URL and a payload on
disk: HTTP transport, mirror rotation, PNG payload extraction and hash checks.
"""

from .integrity import FileIntegrityChecker
from .mirrors import MirrorPolicy
from .payload import PayloadExtractor
from .transport import HttpTransport

__all__ = ["FileIntegrityChecker", "HttpTransport", "MirrorPolicy", "PayloadExtractor"]
