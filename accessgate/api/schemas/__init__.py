"""Pydantic schemas shared by the AccessGate API."""
