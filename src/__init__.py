"""blogstore — blog post persistence over a local and a remote backend."""

__version__ = "0.1.0"
