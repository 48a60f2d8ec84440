"""API routers for AccessGate."""

from . import audit
from . import authz
from . import health

__all__ = [
    "audit",
    "authz",
    "health",
]
