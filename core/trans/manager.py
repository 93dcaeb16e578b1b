from __future__ import annotations

from typing import TYPE_CHECKING

import core.trans.engines  # noqa: F401 - registers the provider classes
from core.trans.fallback import FallbackChain
from core.trans.interface import TransInterface, TranslateExceptionError
from models.provider_models import ProviderEntry
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from core.trans.rate_limiter import RateLimiter
    from models.config_models import Config


__all__: list[str] = ["ProviderManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class ProviderManager:
    """Manager for the translation providers of a run.

    Resolves the configured provider names through the provider registry, initializes each provider and
    wires them into a FallbackChain sharing the given RateLimiter.
    """

    def __init__(self, config: Config, rate_limiter: RateLimiter) -> None:
        """Initialize the ProviderManager with the given configuration.

        Args:
            config (Config): The configuration object containing provider settings.
            rate_limiter (RateLimiter): Limiter gating every provider attempt.
        """
        self.config: Config = config
        self.rate_limiter: RateLimiter = rate_limiter
        self._instances: dict[str, TransInterface] = {}
        self._chain: FallbackChain | None = None
        logger.debug("Registered translation providers: %s", sorted(TransInterface.registered))

    def resolve_provider_names(self) -> list[str]:
        """Primary provider followed by the fallback order, deduplicated in order.

        Returns:
            list[str]: Provider names; only the primary provider when fallback is disabled.
        """
        names: list[str] = [self.config.TRANSLATION.PROVIDER]
        if self.config.TRANSLATION.USE_FALLBACK:
            names.extend(self.config.TRANSLATION.FALLBACK_ORDER)
        return list(dict.fromkeys(name for name in names if name))

    async def initialize(self) -> FallbackChain:
        """Instantiate the configured providers and build the fallback chain.

        Unknown and unavailable providers are skipped with a warning.

        Returns:
            FallbackChain: The chain over every usable provider.

        Raises:
            TranslateExceptionError: If no provider is usable.
        """
        logger.info("ProviderManager initialization started")

        for name in self.resolve_provider_names():
            cls: type[TransInterface] | None = TransInterface.registered.get(name)
            if cls is None:
                logger.warning("Translation provider not found: '%s'", name)
                continue
            instance: TransInterface = cls()
            try:
                instance.initialize(self.config)
            except TranslateExceptionError as err:
                logger.warning("Exception in '%s' provider setup: %s", name, err)
                await instance.close()
                continue
            if not instance.is_available:
                logger.warning("Provider '%s' is not available (missing %s_API_KEY?)", name, name.upper())
                await instance.close()
                continue
            self._instances[name] = instance
            logger.info("Translation provider initialized: '%s'", name)

        if not self._instances:
            msg = "No translation provider is available; configure at least one API key"
            raise TranslateExceptionError(msg)

        self._chain = FallbackChain.from_config(
            [ProviderEntry(name=name, implementation=impl) for name, impl in self._instances.items()],
            self.rate_limiter,
            self.config,
        )
        return self._chain

    @property
    def chain(self) -> FallbackChain:
        """The fallback chain built by ``initialize``.

        Raises:
            TranslateExceptionError: If ``initialize`` has not built a chain yet.
        """
        if self._chain is None:
            msg = "Providers have not been initialized"
            raise TranslateExceptionError(msg)
        return self._chain

    @property
    def provider_names(self) -> list[str]:
        return list(self._instances)

    async def close(self) -> None:
        """Close every provider instance."""
        for name, instance in self._instances.items():
            try:
                await instance.close()
            except Exception as err:  # noqa: BLE001 - closing the remaining providers matters more
                logger.warning("Failed to close provider '%s': %s", name, err)
        self._instances.clear()
        self._chain = None
