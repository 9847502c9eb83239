"""
Test Package Initialization

This package contains all unit and integration tests for the
Realtime Inventory Agent project.

Test Structure:
- test_config.py: Configuration tests
- test_transcript.py: Transcript store and markup tests
- test_events.py: Control channel event decoding tests
- test_tools.py: Tool registry and invoker tests
- test_session_config.py: Session configuration tests
- test_dispatcher.py: Event routing tests
- test_signaling.py: Credential and SDP exchange tests
- test_negotiator.py: Connection lifecycle tests
- test_session.py: End-to-end session tests over a fake transport
- test_catalog.py: Inventory filtering tests
- test_inventory_agent.py: lookupInventory tool tests
- test_api_server.py: Backend endpoint tests
- test_cli.py: CLI tests
- test_logger.py: Logging helper tests

Run tests with:
    pytest tests/ -v
"""
