"""Wiring of the gateway from application settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from finance_gateway.config import Settings
from finance_gateway.database import create_tables, get_engine, make_session_factory
from finance_gateway.directory import CachedAccountDirectory, SqlAccountDirectory
from finance_gateway.gateway.config import (
    GatewayConfig,
    create_sandbox_config,
    load_provider_configs,
    validate_production_config,
)
from finance_gateway.gateway.facade import FinancialGateway
from finance_gateway.providers.registry import ProviderRegistry
from finance_gateway.transfers import SqlTransferStore

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def load_gateway_config(settings: Settings) -> GatewayConfig:
    """Provider configuration from PROVIDERS_CONFIG_PATH, else the sandbox."""
    if not settings.providers_config_path:
        logger.warning("PROVIDERS_CONFIG_PATH not set; only the sandbox provider is registered")
        return create_sandbox_config()

    config = GatewayConfig(providers=load_provider_configs(settings.providers_config_path))
    for issue in validate_production_config(config):
        logger.warning("gateway_config_issue: %s", issue)
    return config


@dataclass
class GatewayRuntime:
    """Everything a process needs to serve gateway calls."""

    gateway: FinancialGateway
    directory: CachedAccountDirectory
    registry: ProviderRegistry
    engine: AsyncEngine

    async def aclose(self) -> None:
        await self.registry.aclose()
        await self.engine.dispose()


async def build_runtime(settings: Settings) -> GatewayRuntime:
    """Build the gateway backed by the SQL directory and transfer store."""
    config = load_gateway_config(settings)
    engine = get_engine(settings.database_url)
    if settings.uses_sqlite:
        await create_tables(engine)
    session_factory = make_session_factory(engine)

    registry = ProviderRegistry.from_configs(config.providers)
    directory = CachedAccountDirectory(SqlAccountDirectory(session_factory))
    gateway = FinancialGateway(
        directory,
        registry,
        transfers=SqlTransferStore(session_factory),
        config=config,
    )
    logger.info("gateway_ready", extra={"providers": registry.names()})
    return GatewayRuntime(gateway=gateway, directory=directory, registry=registry, engine=engine)
