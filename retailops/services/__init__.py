"""Services Layer: imperative shell around core (settings, logging, schemas)."""
