"""Service layer helpers (settings, persistence, execution)."""
