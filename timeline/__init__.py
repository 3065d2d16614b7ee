"""Timeline - Google Drive retrieval-augmented chat backend"""

__version__ = "1.0.0"
