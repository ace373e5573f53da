"""Typer application surfaces for agent-editor."""
