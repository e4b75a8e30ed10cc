"""
Payments Module
"""
from .events import PAYMENT_SUCCEEDED, PaymentEvent
from .reconciler import PaymentEventReconciler, ReconcileOutcome, ReconcileResult
from .secrets import EnvSecretProvider, PrefectSecretProvider, SecretProvider, get_secret_provider

__all__ = [
    "PAYMENT_SUCCEEDED",
    "PaymentEvent",
    "PaymentEventReconciler",
    "ReconcileOutcome",
    "ReconcileResult",
    "EnvSecretProvider",
    "PrefectSecretProvider",
    "SecretProvider",
    "get_secret_provider",
]
