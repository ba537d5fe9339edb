"""Command-line interface for the DTH release portal."""
