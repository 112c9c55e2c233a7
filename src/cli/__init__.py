"""Typer/Rich command-line host."""
