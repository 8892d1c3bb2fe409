"""cmplocator: jump from a rendered Angular component to its source."""

__version__ = "0.1.0"
