"""Command, domain and outcome models."""
