"""
Cuadre Kernel

Domain values, records, errors, logging and persistence shared by the
cuadre engines and services:
- Decimal-only Bs/USD amounts, rounded half-up only at display time
- Typed errors with machine-readable codes
- Structured JSON logging
- SQLAlchemy models for the transactional record store
"""

__version__ = "0.1.0"
