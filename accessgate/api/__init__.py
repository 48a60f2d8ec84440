"""HTTP surface for AccessGate."""
