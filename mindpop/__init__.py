"""MindPop learning platform service layer."""

__version__ = "0.1.0"
