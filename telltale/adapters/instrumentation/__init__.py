"""Runtime hooks that feed the tracker.

- hooks: uncaught exceptions (sys, threading, asyncio)
- logging_handler: log records as breadcrumbs
- performance: slow operations and failed resource loads
"""
