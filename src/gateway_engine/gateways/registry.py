"""Gateway configuration registry and adapter factory.

GATEWAY_FACTORIES is a closed mapping from GatewayKind to adapter
constructor. It is checked at import so that adding a GatewayKind without a
constructor fails at startup instead of on the first payment.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping

from gateway_engine.exceptions import (
    ConfigurationError,
    GatewayDisabledError,
    GatewayNotConfiguredError,
)
from gateway_engine.gateways.base import GatewayAdapter
from gateway_engine.gateways.pagarme_sandbox import PagarMeSandboxGateway
from gateway_engine.gateways.stripe_sandbox import StripeSandboxGateway
from gateway_engine.models.gateway import GatewayConfig, GatewayKind

logger = logging.getLogger(__name__)

GatewayFactory = Callable[[GatewayConfig], GatewayAdapter]

# (gateway name, removed) -> None
InvalidationListener = Callable[[str, bool], None]

GATEWAY_FACTORIES: Mapping[GatewayKind, GatewayFactory] = {
    GatewayKind.STRIPE: StripeSandboxGateway,
    GatewayKind.PAGARME: PagarMeSandboxGateway,
}


def validate_factories(factories: Mapping[GatewayKind, GatewayFactory]) -> None:
    """Ensure every GatewayKind has a constructor."""
    missing = [kind.value for kind in GatewayKind if kind not in factories]
    if missing:
        raise ConfigurationError(f"No adapter constructor for gateway kinds: {missing}")


validate_factories(GATEWAY_FACTORIES)


class GatewayRegistry:
    """Owns gateway configs and lazily built adapter instances.

    Usage:
        registry = GatewayRegistry()
        registry.register_config("stripe", {
            "kind": "stripe",
            "environment": "sandbox",
            "credentials_ref": "secrets/stripe",
        })
        adapter = registry.get_gateway("stripe")
    """

    def __init__(self, factories: Mapping[GatewayKind, GatewayFactory] | None = None):
        self._factories = dict(factories if factories is not None else GATEWAY_FACTORIES)
        validate_factories(self._factories)
        self._configs: dict[str, GatewayConfig] = {}
        self._instances: dict[str, GatewayAdapter] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._listeners: list[InvalidationListener] = []

    def _lock_for(self, name: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.Lock()
            return lock

    def add_invalidation_listener(self, listener: InvalidationListener) -> None:
        """Called with (name, removed) whenever a gateway's config changes."""
        self._listeners = [*self._listeners, listener]

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def register_config(
        self, name: str, config: GatewayConfig | Mapping[str, Any]
    ) -> GatewayConfig:
        """Validate and store a gateway config, replacing any previous one."""
        if isinstance(config, GatewayConfig):
            if config.name != name:
                raise ConfigurationError(
                    f"Config name {config.name!r} does not match {name!r}", gateway=name
                )
        else:
            config = GatewayConfig.from_mapping(name, config)

        if config.kind not in self._factories:
            raise ConfigurationError(f"Unsupported gateway kind: {config.kind.value}", gateway=name)

        with self._lock_for(name):
            replaced = name in self._configs
            self._configs[name] = config
            self._instances.pop(name, None)

        logger.info(
            "Gateway %s %s (kind=%s, environment=%s, enabled=%s)",
            name,
            "reconfigured" if replaced else "registered",
            config.kind.value,
            config.environment,
            config.enabled,
            extra={"gateway": name},
        )
        if replaced:
            self._notify(name, removed=False)
        return config

    def update_config(self, name: str, **changes: Any) -> GatewayConfig:
        """Apply field changes to an existing config."""
        with self._lock_for(name):
            current = self._configs.get(name)
            if current is None:
                raise GatewayNotConfiguredError(name)
            updated = current.merged(**changes)
            if updated.kind not in self._factories:
                raise ConfigurationError(
                    f"Unsupported gateway kind: {updated.kind.value}", gateway=name
                )
            self._configs[name] = updated
            self._instances.pop(name, None)

        logger.info(
            "Gateway %s updated: %s",
            name,
            sorted(changes),
            extra={"gateway": name},
        )
        self._notify(name, removed=False)
        return updated

    def enable(self, name: str) -> GatewayConfig:
        return self.update_config(name, enabled=True)

    def disable(self, name: str) -> GatewayConfig:
        return self.update_config(name, enabled=False)

    def remove(self, name: str) -> None:
        """Forget a gateway entirely."""
        with self._lock_for(name):
            if name not in self._configs:
                raise GatewayNotConfiguredError(name)
            del self._configs[name]
            self._instances.pop(name, None)
        with self._registry_lock:
            self._locks.pop(name, None)
        logger.info("Gateway %s removed", name, extra={"gateway": name})
        self._notify(name, removed=True)

    def _notify(self, name: str, removed: bool) -> None:
        for listener in self._listeners:
            listener(name, removed)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_config(self, name: str) -> GatewayConfig:
        config = self._configs.get(name)
        if config is None:
            raise GatewayNotConfiguredError(name)
        return config

    def get_gateway(self, name: str) -> GatewayAdapter:
        """Cached adapter for an enabled gateway.

        Raises:
            GatewayNotConfiguredError: Unknown name.
            GatewayDisabledError: Gateway is disabled.
            ConfigurationError: Adapter construction failed.
        """
        with self._lock_for(name):
            config = self._configs.get(name)
            if config is None:
                raise GatewayNotConfiguredError(name)
            if not config.enabled:
                raise GatewayDisabledError(name)

            adapter = self._instances.get(name)
            if adapter is None:
                factory = self._factories[config.kind]
                try:
                    adapter = factory(config)
                except Exception as e:
                    raise ConfigurationError(
                        f"Failed to build adapter for gateway {name}: {e}", gateway=name
                    ) from e
                self._instances[name] = adapter
                logger.debug("Built %s adapter for gateway %s", config.kind.value, name)
            return adapter

    def names(self) -> list[str]:
        """All registered gateway names, in registration order."""
        return list(self._configs)

    def enabled_names(self) -> list[str]:
        return [name for name, config in list(self._configs.items()) if config.enabled]

    def configs(self) -> list[GatewayConfig]:
        return list(self._configs.values())

    def __contains__(self, name: object) -> bool:
        return name in self._configs

    def __len__(self) -> int:
        return len(self._configs)
