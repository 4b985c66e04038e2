"""
Manager - Backend Factory.

Selects a Manager backend from orchestrator configuration.
"""

import logging
from typing import TYPE_CHECKING

from core.exceptions import ConfigurationError

from .interfaces import ManagerFacade
from .remote import RemoteManager
from .simulated import SimulatedManager

if TYPE_CHECKING:
    from orchestrator.models import OrchestratorConfig


logger = logging.getLogger(__name__)


BACKENDS = ("simulated", "remote")


def create_manager(config: "OrchestratorConfig") -> ManagerFacade:
    """
    Create the Manager backend named by ``config.backend``.

    Raises:
        ConfigurationError: Unknown backend name
    """
    if config.backend == "simulated":
        logger.info("Using simulated Manager backend")
        return SimulatedManager()

    if config.backend == "remote":
        logger.info(f"Using remote Manager backend at {config.manager_url}")
        return RemoteManager(
            base_url=config.manager_url,
            poll_interval_seconds=config.poll_interval_seconds,
            request_timeout_seconds=config.request_timeout_seconds,
        )

    raise ConfigurationError(
        f"Unknown Manager backend: {config.backend}",
        config_key="backend",
        actual_value=config.backend,
    )


__all__ = ["BACKENDS", "create_manager"]
