"""RetailOps assignment resolution and data integrity engine.

Invariants:
    - Package root contains no executable code (no import side-effects)
"""
