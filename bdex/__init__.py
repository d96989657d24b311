"""
bdex: fetch files that were split into blocks and hidden inside PNG images.
"""

__version__ = "0.3.0"
