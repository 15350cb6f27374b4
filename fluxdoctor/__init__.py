"""fluxdoctor: read-only health diagnostics for FluxCD-managed resources."""

__version__ = "0.1.0"
