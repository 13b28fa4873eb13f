"""Core computational modules for celltype-propeller.

This package contains the analysis engines:
- proportions: differential cell-type proportion testing between groups
"""
