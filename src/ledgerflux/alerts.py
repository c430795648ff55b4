from typing import Optional

import sentry_sdk

FLUSH_TIMEOUT = 2.0


class AlertSink:
    """Forwards fatal error messages to Sentry when a DSN is configured."""

    def __init__(self, dsn: Optional[str] = None):
        self.enabled = bool(dsn)
        if self.enabled:
            sentry_sdk.init(dsn=dsn, traces_sample_rate=1.0)

    def notify(self, message: str) -> None:
        """Capture message and wait for it to be sent. No-op when disabled."""
        if not self.enabled:
            return
        sentry_sdk.capture_message(message)
        sentry_sdk.flush(timeout=FLUSH_TIMEOUT)
