"""Schemas Layer: Pydantic models at the library boundary (principal input, report output)."""
