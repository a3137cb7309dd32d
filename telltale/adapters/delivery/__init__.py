"""Delivery adapters for shipping events and alerts out of process.

Implementations support multiple destinations:
- Remote collector (every admitted event)
- Slack (incoming webhook)
- Generic webhook (configurable method and headers)
- GitHub issues (one issue per alert)
- Email (SMTP)
"""
