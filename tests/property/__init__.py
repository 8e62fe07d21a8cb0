# tests/property/__init__.py
"""Property-based tests for tablemapper.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific examples we think of.

Test categories:
- contracts/: condition normalization and qualification
- core/: value normalization, reconciliation partitions, sync against a real database
"""
