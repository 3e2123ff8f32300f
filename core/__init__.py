"""
Core Package

Contains the exchange-agnostic core logic including:
- Settings and logging
- ExchangeInterface: Abstract base class defining the contract for all exchanges
- ExchangeManager: Registry of the exchanges being watched
- Schemas: Pydantic models for snapshots, records, transitions and delivery outcomes
"""
