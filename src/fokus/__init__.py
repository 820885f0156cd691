"""Fokus - focus sessions and a shared countdown timer kept in sync across clients."""

__version__ = "0.1.0"
