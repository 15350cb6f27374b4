"""Logging and metrics for fluxdoctor."""
