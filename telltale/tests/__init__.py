"""Test suite for the Telltale capture service.

Organized into three categories:

1. core/: Unit tests for core domain logic
   - No I/O, fast execution
   - Uses in-memory fakes for ports

2. adapters/: Tests for adapter implementations
   - HTTP adapters run against httpx.MockTransport
   - Runtime hooks are installed and restored around each test

3. fakes/: Port implementations for testing
   - Recording alert channels and event sinks, an inline runner,
     a controllable clock
"""
