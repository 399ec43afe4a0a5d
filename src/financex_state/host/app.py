"""Startup wiring: initialize the store once and hand it to the command layer."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from financex_state.constants import DEFAULT_LOCALE
from financex_state.host.commands import CommandRouter, StateCommands
from financex_state.persistence.initializer import StoreOptions, initialize, resolve_db_path
from financex_state.persistence.paths import directory_provider_from_config
from financex_state.persistence.state_register import StateRegister

if TYPE_CHECKING:
    from financex_state.persistence.paths import DirectoryProvider

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class StateApp:
    """Process-lifetime owner of the register and the command surface."""

    db_path: Path
    register: StateRegister
    commands: StateCommands
    router: CommandRouter

    @classmethod
    def bootstrap(
        cls,
        config: Mapping[str, object],
        *,
        directory_provider: DirectoryProvider | None = None,
    ) -> StateApp:
        """Initialize storage; startup errors propagate and abort launch."""

        provider = directory_provider or directory_provider_from_config(config)
        options = StoreOptions.from_config(config)
        db_path = resolve_db_path(provider, options)
        register = StateRegister(initialize(provider, options))
        commands = StateCommands(register, locale=_locale_from_config(config))
        logger.debug("state_app_ready", path=str(db_path), locale=commands.locale)
        return cls(
            db_path=db_path,
            register=register,
            commands=commands,
            router=CommandRouter(commands),
        )

    def close(self) -> None:
        self.register.close()

    def __enter__(self) -> StateApp:
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        del exc_type, exc, tb
        self.close()


def _locale_from_config(config: Mapping[str, object]) -> str:
    app = config.get("app")
    locale = app.get("locale") if isinstance(app, Mapping) else None
    return locale if isinstance(locale, str) else DEFAULT_LOCALE


__all__ = ["StateApp"]
