"""Command line entry point for the expense wallet."""
