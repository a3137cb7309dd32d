"""Sampling and pattern-based admission control for captured events."""

import random
from collections.abc import Callable, Sequence


class SamplingFilter:
    """Decides whether an event draft is admitted.

    Two independent gates combined with AND: a probabilistic draw
    against ``error_sample_rate`` and substring pattern filtering on
    the message and source file path.
    """

    def __init__(
        self,
        error_sample_rate: float = 1.0,
        ignore_errors: Sequence[str] = (),
        ignore_urls: Sequence[str] = (),
        allow_urls: Sequence[str] = (),
        rng: Callable[[], float] = random.random,
    ):
        self.error_sample_rate = min(max(error_sample_rate, 0.0), 1.0)
        self.ignore_errors = tuple(ignore_errors)
        self.ignore_urls = tuple(ignore_urls)
        self.allow_urls = tuple(allow_urls)
        self.rng = rng

    def should_capture(self, message: str, filename: str | None = None) -> bool:
        if not self.is_sampled():
            return False
        return not self.is_ignored(message, filename)

    def is_sampled(self) -> bool:
        return self.rng() < self.error_sample_rate

    def is_ignored(self, message: str, filename: str | None = None) -> bool:
        """Pattern gate.

        A missing filename never matches an ignore URL and never fails
        the allow-list.
        """
        if any(pattern in message for pattern in self.ignore_errors):
            return True

        if filename:
            if any(pattern in filename for pattern in self.ignore_urls):
                return True
            if self.allow_urls and not any(
                pattern in filename for pattern in self.allow_urls
            ):
                return True

        return False
