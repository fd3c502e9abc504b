"""CI dashboard client: change detection, multi-service image builds and registry connectivity."""

__version__ = "1.0.0"
