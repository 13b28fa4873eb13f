"""Test suite for celltype-propeller.

Test organization:
- unit/: Unit tests for individual modules
- fixtures/: Mock per-cell label generators with known counts

Run tests with:
    pytest tests/
    pytest tests/unit/ -v --tb=short
"""
