"""
utils - Shared utilities for hdlnav.

Subpackages:
    utils.parsers  - Configuration parsers (GlobalConfig)
"""

__version__ = "1.0.0"
