"""
file-sorter: move files from source trees into date or extension folders.
"""

__version__ = "1.0.0"
