"""Downstream clients and the command orchestrator."""
