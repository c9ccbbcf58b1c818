"""streamgate: metadata and single-encoding download API for online videos."""

__version__ = "1.0.0"
