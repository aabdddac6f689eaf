"""
Guildhall Backend — Application Package Initializer
====================================================

What: Marks the `guildhall` directory as a Python package.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend is layered:

    ┌─────────────────────────────────────┐
    │     Routes + Auth Gate (API Layer)  │  ← HTTP concerns, acting member
    ├─────────────────────────────────────┤
    │  Services (Ledger, Emitter, Dir.)   │  ← Invariants, transitions
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes never touch the ORM directly; every connection action goes
    through the ConnectionLedger so the pair invariants live in one place.
"""

__version__ = "1.0.0"
