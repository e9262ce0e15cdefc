"""
Advance Tax Kernel.

Shared foundation for the advance tax engine:
- Structured JSON logging with request-scoped context
- Typed exception hierarchy with machine-readable codes
- Injectable clock, financial-year and money value objects
- Declarative workflow types
- SQLAlchemy base classes, engine/session management, immutability listeners
"""

__version__ = "0.1.0"
