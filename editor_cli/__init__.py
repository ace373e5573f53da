"""Command-line client for the agent-editor knowledge service.

The command surface is implemented with Typer and Rich for better help and
error ergonomics, while every substantive operation is delegated to the
service over JSON-RPC.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
