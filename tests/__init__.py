"""
Entity model generator test suite.

This package contains:
- unit/: Unit tests (in-memory catalogs, no files)
- integration/: Integration tests (catalog files, locking, pipeline, CLI)
"""
