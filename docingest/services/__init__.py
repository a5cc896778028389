"""Service layer: orchestration built on the interfaces in :mod:`docingest.interfaces`."""
