"""Core infrastructure: configuration, logging, errors and HTTP plumbing."""
