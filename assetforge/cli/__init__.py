"""Assetforge CLI — Typer-based command-line interface.

Provides the ``assetforge`` command with subcommands for running pipeline
declarations and listing filters.  All output uses Rich.
"""
