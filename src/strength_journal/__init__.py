"""
Strength Journal - Offline-first workout tracker synchronization.

Keeps a local workout database in step with a second copy stored in an
exported JSON file or a private Google Drive app-data folder.
"""

__version__ = "0.1.0"
