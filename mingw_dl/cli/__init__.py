"""Command-line interface and terminal presentation."""
