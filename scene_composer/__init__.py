"""Scene composition service: renders shot timelines into a single video."""

__version__ = "0.1.0"
