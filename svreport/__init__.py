"""Software inventory reporting gateway with local open-source flags and remarks."""

__version__ = "0.1.0"
