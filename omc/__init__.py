"""Inspect OpenShift must-gather archives: contexts, logs, objects and API resources."""

__version__ = "0.1.0"
__all__ = ["__version__"]