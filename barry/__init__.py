"""A file-routed dynamic HTML framework with Jinja2 pages, disk caching and live reload."""

__version__ = "0.1.0"
__all__ = ["__version__"]