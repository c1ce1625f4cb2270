"""Command-line interface for regionguard."""
