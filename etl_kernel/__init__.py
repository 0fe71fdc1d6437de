"""
ETL Kernel - shared infrastructure for the customer import pipeline.

Provides:
- Typed exceptions with machine-readable codes
- Structured JSON logging with context propagation
- SQLAlchemy declarative base, engine construction and transaction scope
- Injectable clock
"""

__version__ = "0.1.0"
