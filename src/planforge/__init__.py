"""planforge - turn natural-language requests into executed action plans."""

__version__ = "0.1.0"
