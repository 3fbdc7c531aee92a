"""Command-line interface for change-guard."""
