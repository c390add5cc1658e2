"""Command line interface for teamwork."""
