"""Watching domain: watch triggers and their checkpoints."""
