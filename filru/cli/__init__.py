"""Command line interface for filru."""
