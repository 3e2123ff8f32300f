"""
Test Suite

Contains unit tests for the listing watcher.

Structure:
- tests/unit/: Tests for individual components (config, connectors, store,
  reconciler, processor, scheduler, dispatcher, channels)

Exchanges, the database and notification providers are all faked; nothing
leaves the process. Uses pytest with pytest-asyncio for async code.
"""
