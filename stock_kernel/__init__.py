"""
Stock Kernel

Shared infrastructure for the multi-site inventory and ordering modules:
- Typed exceptions with machine-readable codes
- Structured JSON logging with request-scoped context
- SQLAlchemy base classes, engine and unit-of-work helpers
- Explicit authorization context (no ambient user state)
- Injectable clock for deterministic tests
"""

__version__ = "0.1.0"
