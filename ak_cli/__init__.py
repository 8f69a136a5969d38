"""Command-line interface for the ak package cache."""
