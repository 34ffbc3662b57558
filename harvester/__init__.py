"""Thread Harvester: periodic collection of issue and Q&A threads."""

__version__ = "0.1.0"
