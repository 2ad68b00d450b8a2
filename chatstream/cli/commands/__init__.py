"""Top-level command groups discovered by the CLI registry."""
