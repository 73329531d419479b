"""Core Layer: pure assignment and data-integrity logic, no IO.

Invariants:
    - No module in core/ imports from services/, schemas/, infrastructure/ or config
    - All functions are deterministic; build_report's timestamp is the only clock read
    - Bad domain data is reported as values; only caller contract violations raise
"""
