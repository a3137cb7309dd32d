"""External adapters for the Telltale capture service.

This package contains all external dependencies (HTTP collectors, chat
and issue-tracker APIs, SMTP, runtime hooks) and provides
implementations of the core port interfaces.

Adapter Organization:

- delivery/: Event collector and alert channels (Slack, webhook, GitHub, email)
- scheduler/: Background runner that executes deliveries off the capture path
- instrumentation/: Runtime hooks feeding uncaught errors and breadcrumbs
- storage/: Key-value storages read for the current user
"""
