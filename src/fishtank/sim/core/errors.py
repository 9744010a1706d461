from __future__ import annotations


class InvalidConfiguration(ValueError):
    """Raised when tank bounds or steering parameters cannot drive a simulation."""
