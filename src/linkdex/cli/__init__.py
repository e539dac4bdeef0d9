"""Command-line interface for linkdex."""
