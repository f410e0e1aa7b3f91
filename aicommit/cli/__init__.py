"""Command-line interface for ai-commit."""
