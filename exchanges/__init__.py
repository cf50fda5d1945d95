"""
Exchange Adapters Package

One subpackage per exchange. Each exposes a single adapter class in its
__init__.py implementing ExchangeAdapter through one of two strategies:
- SinglePhaseAdapter: one bulk request returns every funding rate
- ListThenDetailAdapter: list instruments, then one request per instrument

The modular design allows adding new exchanges without modifying existing code.
"""
