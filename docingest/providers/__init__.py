"""Concrete adapters for the interfaces in :mod:`docingest.interfaces`."""
