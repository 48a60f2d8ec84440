"""AccessGate: runtime authorization decisions for the admin application."""

__version__ = "0.3.0"
