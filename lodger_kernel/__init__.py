"""
Lodger Kernel

Shared foundation for the tenancy lifecycle engine:
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging
- SQLAlchemy declarative base, engine and transactional scope
- Injectable clock and workflow value objects
"""

__version__ = "0.1.0"
