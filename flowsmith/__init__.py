"""flowsmith: artifact pipeline for declarative workflow documents."""

__version__ = "0.1.0"
