"""
Error taxonomy for the rollup pipeline and the payment webhook.

Skipped ledger rows and ignored event types are not errors; they are
reported through counters and ``ReconcileOutcome`` values instead.
"""


class StoreAnalyticsError(Exception):
    """Base class for all application errors."""


class DataAccessError(StoreAnalyticsError):
    """Raised when the ledger cannot be read or summaries cannot be written."""


class WebhookError(StoreAnalyticsError):
    """Raised when a payment webhook delivery cannot be processed."""

    status_code = 400


class MissingSignature(WebhookError):
    """Signature header or signing secret is absent."""


class AuthenticationFailure(WebhookError):
    """The payload signature did not verify against the signing secret."""


class MalformedEventError(WebhookError):
    """The verified payload is not a well-formed event."""


class ApplyFailure(WebhookError):
    """The order mutation failed after the event was verified."""

    status_code = 500


class WebhookConfigurationError(WebhookError):
    """The signing secret is present but the Stripe API key is not."""

    status_code = 500
