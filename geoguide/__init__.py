"""GeoGuide: a map-grounded chat assistant served with FastAPI."""

__version__ = "0.1.0"
