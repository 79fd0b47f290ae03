"""
Workflow Kernel

Persistence-backed core of the approval workflow engine:
- Immutable definition and instance domain model
- Typed error taxonomy
- Append-only execution history and decision ledger
- Optimistic per-instance concurrency control
"""

__version__ = "0.1.0"
