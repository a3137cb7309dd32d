"""Composition root for the Telltale capture service.

This module is the ONLY location that imports both core domain logic
and concrete adapter implementations. All wiring of dependencies
happens here.

Module Structure:
- Configuration loading via config module
- Adapter instantiation (delivery channels, runner, hooks, storages)
- Tracker construction
- A small CLI for sending test events and dumping tracker state
"""

import argparse
import logging
import sys

from telltale.adapters.delivery.collector import CollectorEventSink
from telltale.adapters.delivery.email import EmailAlertChannel
from telltale.adapters.delivery.github_issues import GitHubIssueAlertChannel
from telltale.adapters.delivery.slack import SlackAlertChannel
from telltale.adapters.delivery.webhook import WebhookAlertChannel
from telltale.adapters.instrumentation.hooks import (
    AsyncioExceptionHandlerInstrumentation,
    ExceptHookInstrumentation,
)
from telltale.adapters.instrumentation.logging_handler import (
    LoggingBreadcrumbInstrumentation,
)
from telltale.adapters.instrumentation.performance import PerformanceMonitor
from telltale.adapters.scheduler.worker import BackgroundLoopRunner
from telltale.adapters.storage.stores import (
    EnvironmentStorage,
    JsonFileStorage,
    MemoryStorage,
)
from telltale.config import TrackerSettings, load_settings
from telltale.core.dispatcher import DeliveryDispatcher
from telltale.core.models import AlertChannel
from telltale.core.ports import AlertChannelPort, UserStoragePort
from telltale.core.user_context import UserContextResolver
from telltale.error_tracker import ErrorTracker


def configure_logging(log_level: str, log_format: str) -> None:
    """Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Log format (json, text).
    """
    level = getattr(logging, log_level, logging.INFO)

    if log_format == "json":
        format_str = '{"time": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "message": "%(message)s"}'
    else:
        format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


def build_dispatcher(settings: TrackerSettings) -> DeliveryDispatcher:
    """Instantiate the collector and every alert channel from settings."""
    integration = settings.integration
    timeout = settings.delivery_timeout_seconds

    channels: dict[AlertChannel, AlertChannelPort] = {
        AlertChannel.SLACK: SlackAlertChannel(
            webhook_url=integration.slack.webhook.get_secret_value(),
            channel=integration.slack.channel,
            username=integration.slack.username,
            icon_emoji=integration.slack.icon,
            enabled=integration.slack.enabled,
            timeout_seconds=timeout,
        ),
        AlertChannel.WEBHOOK: WebhookAlertChannel(
            url=integration.webhook.url,
            method=integration.webhook.method,
            headers=integration.webhook.headers,
            enabled=integration.webhook.enabled,
            timeout_seconds=timeout,
        ),
        AlertChannel.GITHUB: GitHubIssueAlertChannel(
            repository=integration.github.repository,
            github_token=integration.github.token.get_secret_value(),
            api_base_url=integration.github.api_base_url,
            labels=integration.github.labels or None,
            enabled=integration.github.enabled and integration.github.auto_create_issues,
            timeout_seconds=timeout,
        ),
        AlertChannel.EMAIL: EmailAlertChannel(
            smtp_host=integration.email.smtp_host,
            smtp_port=integration.email.smtp_port,
            sender=integration.email.sender,
            recipients=integration.email.recipients,
            password=integration.email.password.get_secret_value(),
            use_tls=integration.email.use_tls,
            enabled=integration.email.enabled,
            timeout_seconds=timeout,
        ),
    }

    sink = CollectorEventSink(
        dsn=settings.dsn,
        collector_path=settings.collector_path,
        timeout_seconds=timeout,
    )
    return DeliveryDispatcher(channels=channels, event_sink=sink)


def build_user_resolver(settings: TrackerSettings) -> UserContextResolver:
    primary: UserStoragePort
    if settings.user_storage_path:
        primary = JsonFileStorage(settings.user_storage_path)
    else:
        primary = EnvironmentStorage()
    return UserContextResolver(primary=primary, fallback=MemoryStorage())


def create_tracker(settings: TrackerSettings | None = None) -> ErrorTracker:
    """Wire a fully configured tracker.

    The tracker is returned uninitialized; call ``initialize()`` to
    install the runtime hooks.
    """
    settings = settings or load_settings()
    logger = logging.getLogger(__name__)
    logger.debug(
        f"Creating tracker for environment '{settings.environment}'",
        extra={"release": settings.release, "provider": settings.provider},
    )

    return ErrorTracker(
        settings=settings,
        dispatcher=build_dispatcher(settings),
        runner=BackgroundLoopRunner(),
        user_resolver=build_user_resolver(settings),
        instrumentations=[
            ExceptHookInstrumentation(),
            AsyncioExceptionHandlerInstrumentation(),
            PerformanceMonitor(),
            LoggingBreadcrumbInstrumentation(),
        ],
    )


def main(argv: list[str] | None = None) -> None:
    """Command-line entry point.

    Commands:
        test-error: Capture a synthetic exception and deliver it.
        export: Print the tracker state as JSON.

    Exit codes:
        0: Success
        1: Fatal error
        130: Interrupted by user
    """
    parser = argparse.ArgumentParser(prog="telltale")
    parser.add_argument("command", choices=["test-error", "export"])
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    args = parser.parse_args(argv)

    logger = logging.getLogger(__name__)
    try:
        settings = load_settings(args.env_file)
        configure_logging(settings.log_level, settings.log_format)

        tracker = create_tracker(settings)
        tracker.initialize()
        try:
            if args.command == "test-error":
                if settings.environment != "development":
                    logger.warning("test-error only runs in the development environment")
                tracker.send_test_error()
            else:
                print(tracker.export_data())
        finally:
            tracker.shutdown()
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
