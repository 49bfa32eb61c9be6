"""Scene Batch Queue core: batch parsing, session defaults, execution and queue watching."""

__version__ = "0.3.0"
