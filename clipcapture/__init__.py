"""
Clipboard image capture for Linux.
Saves the clipboard image to a file through a bundled helper script.
"""

__version__ = "0.1.0"
