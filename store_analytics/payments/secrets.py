"""
Secret providers for the payment integration.

Secrets are looked up on every webhook call and never cached, so a rotated
key takes effect on the next delivery.
"""

import asyncio
from typing import Optional, Protocol

import structlog

from store_analytics.config import get_settings
from store_analytics.config.settings import StripeSettings

logger = structlog.get_logger(__name__)

STRIPE_SECRET_KEY = "STRIPE_SECRET_KEY"
STRIPE_WEBHOOK_SECRET = "STRIPE_WEBHOOK_SECRET"


class SecretProvider(Protocol):
    async def get(self, name: str) -> Optional[str]:
        ...


class EnvSecretProvider:
    """Reads secrets from the environment (or ``.env``) at call time"""

    async def get(self, name: str) -> Optional[str]:
        stripe_settings = StripeSettings()
        value = {
            STRIPE_SECRET_KEY: stripe_settings.secret_key,
            STRIPE_WEBHOOK_SECRET: stripe_settings.webhook_secret,
        }.get(name)
        return value.get_secret_value() if value is not None else None


class PrefectSecretProvider:
    """Reads secrets from Prefect ``Secret`` blocks"""

    def __init__(self, block_names: Optional[dict] = None):
        stripe_settings = get_settings().stripe
        self.block_names = block_names or {
            STRIPE_SECRET_KEY: stripe_settings.secret_key_block,
            STRIPE_WEBHOOK_SECRET: stripe_settings.webhook_secret_block,
        }

    async def get(self, name: str) -> Optional[str]:
        block_name = self.block_names.get(name)
        if block_name is None:
            return None
        from prefect.blocks.system import Secret

        try:
            # Loaded in a worker thread so Block.load runs synchronously
            block = await asyncio.to_thread(Secret.load, block_name)
        except ValueError:
            logger.warning("Secret block not found", block=block_name)
            return None
        return block.get()


def get_secret_provider() -> SecretProvider:
    """FastAPI dependency selecting the configured secret backend"""
    if get_settings().stripe.secrets_backend == "prefect":
        return PrefectSecretProvider()
    return EnvSecretProvider()
