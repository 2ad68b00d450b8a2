"""Command-line interface for chatstream."""
