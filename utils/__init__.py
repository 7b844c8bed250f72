"""Helpers shared by the CLI: validation, file transfer and output rendering."""
