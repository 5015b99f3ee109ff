"""
School Kernel

Shared foundation for the school credit ledger:
- Structured logging with per-request context
- Typed exception hierarchy
- Clock abstraction for deterministic tests
- Immutable value objects and snapshot domain types
"""

__version__ = "0.1.0"
