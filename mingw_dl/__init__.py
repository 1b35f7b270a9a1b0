"""
mingw-dl: browse, filter, download and unpack MinGW-w64 build releases.
"""

__version__ = "0.1.0"
