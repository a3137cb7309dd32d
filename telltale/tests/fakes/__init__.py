"""Fake implementations of core ports for testing.

These in-memory implementations allow core domain logic to be tested
without network access or global hooks:

- FakeAlertChannel: Captured alerts for assertion
- FakeEventSink: Captured collector deliveries
- InlineRunner: Runs delivery coroutines synchronously on submit
- FakeClock: Manually advanced time source
- FakeUserStorage: Dict-backed user storage
"""

from .channels import FakeAlertChannel, FakeEventSink
from .clock import FakeClock
from .runner import InlineRunner
from .storage import FakeUserStorage

__all__ = [
    "FakeAlertChannel",
    "FakeClock",
    "FakeEventSink",
    "FakeUserStorage",
    "InlineRunner",
]
