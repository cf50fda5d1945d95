"""
Test Suite

Structure:
- tests/unit/: Tests for individual components (fetcher, adapters, storage, scheduler, API)
- tests/factories.py: Builders for exchanges, pairs and funding rate rows
- tests/fakes.py: In-process fetcher stand-in for adapter tests

Uses pytest with pytest-asyncio for testing async functionality. No test
touches a real exchange; HTTP behaviour is tested against a local aiohttp server.
"""
