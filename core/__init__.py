"""
Core Package

Contains the exchange-agnostic collection pipeline including:
- ResilientFetcher: HTTP GET with timeouts, retries and exponential backoff
- ExchangeAdapter: Abstract base class defining the contract for all exchanges
- AdapterRegistry: Read-only registry of the adapters being collected
- Normalization: Symbol splitting and trading pair resolution
- Schemas: Pydantic models for exchanges, pairs, funding rates and events

This layer ensures all exchanges follow the same interface, making the system modular and scalable.
"""
