"""Card payment gateway with idempotent processing and bank circuit breaking."""

__version__ = "1.0.0"
