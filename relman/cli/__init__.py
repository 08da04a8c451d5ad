"""relman CLI: Typer-based command-line interface.

Provides the ``relman`` command with subcommands for uploading releases,
querying packages and releases, reconciling metadata with the archive
tree, and deleting releases.

All output uses Rich for formatted terminal display.
"""
