"""
Exchange Connectors Package

This package contains exchange connector modules. Each connector subfolder has:
- __init__.py: Main exchange class implementing ExchangeInterface
- api_client.py: REST API logic

Currently a single ccxt-backed connector (unified/) serves every exchange id.
"""
