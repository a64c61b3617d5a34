"""
Registry mapping application classes to their module generators.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..core.contracts import ConfigObject, SchemaObject, Session
from ..core.errors import MissingConfiguration
from ..core.store import ConfigStore

logger = logging.getLogger(__name__)

Generator = Callable[..., list[ConfigObject]]

MODULE_FACTORY: dict[str, Generator] = {}


def register(class_name: str) -> Callable[[Generator], Generator]:
    """Decorator registering ``func`` as the generator for ``class_name`` applications."""

    def _decorator(func: Generator) -> Generator:
        if class_name in MODULE_FACTORY:
            raise ValueError(f"A generator is already registered for {class_name}")
        MODULE_FACTORY[class_name] = func
        return func

    return _decorator


def generate_modules(
    app: SchemaObject,
    store: ConfigStore,
    dbfile: str,
    session: Session,
    **kwargs: Any,
) -> list[ConfigObject]:
    """Dispatch to the generator registered for the application's class."""

    class_name = getattr(app, "class_name", type(app).__name__)
    try:
        generator = MODULE_FACTORY[class_name]
    except KeyError as exc:
        raise MissingConfiguration(
            f"No module generator registered for {class_name}. Available: {sorted(MODULE_FACTORY)}"
        ) from exc
    logger.info("Generating modules for %s@%s into %s", app.uid, class_name, dbfile)
    return generator(app, store, dbfile, session, **kwargs)


__all__ = ["Generator", "MODULE_FACTORY", "generate_modules", "register"]
