"""Application services for AccessGate."""
