"""
Integration tests for the OKX trading gateway.

These tests talk to the real OKX API and only read account state.
They require OKX credentials and LIVE_TEST_ENABLED=true.

Run with:
    LIVE_TEST_ENABLED=true pytest tests/integration/ -v -m live

Skip with:
    pytest -m "not integration"
"""
