"""
Entity model generator - stable identities for generated data bindings.

This package keeps a persisted model catalog in sync with data-model
declarations, so that generated serialization code always uses the same
numeric identities for the same entities and properties:
- Declarations (bindings) are matched to catalog elements by uid, then name
- New elements get fresh sequential ids and random, never-reused uids
- The catalog is validated and checked for relation cycles before writing

Architecture:
    ┌──────────────┐     ┌─────────────┐     ┌──────────────────┐
    │ Declarations │────▶│   Binding   │────▶│ Merge (planning, │
    │ (YAML/JSON)  │     │             │     │  then applying)  │
    └──────────────┘     └─────────────┘     └────────┬─────────┘
                                                      │
                         ┌─────────────┐              ▼
                         │ Model file  │◀──── ModelInfo ───▶ Cycle check
                         │ (locked)    │
                         └─────────────┘

Invariants:
    - ids and uids are immutable once assigned and never reused
    - Names are labels; a uid annotation makes a rename keep its identity
    - A run that fails leaves the model file untouched
    - One generator run holds the model file lock at a time
"""

__version__ = "0.1.0"
