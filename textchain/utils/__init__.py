"""Command grammar and reply helpers."""
