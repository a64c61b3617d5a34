"""
CLI entrypoint that generates the module topology of a readout application.

Loads the YAML application description with the Dynaconf configuration
service, seeds the template objects into the target configuration database,
runs the registered module generator and optionally prints the generated
objects as YAML.
"""

from __future__ import annotations

import argparse
import logging
import logging.handlers
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, TextIO

import yaml

from .core.config import ConfigError, ConfigService, seed_templates
from .core.contracts import ConfigObject
from .core.errors import ConfigurationError, StoreError
from .core.sql_store import SqlConfigStore
from .core.store import ConfigStore
from .generator import generate_modules

LOGGER = logging.getLogger(__name__)
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _ensure_rotating_file_handler(
    log_file: Path,
    *,
    max_mb: int = 10,
    backup_count: int = 3,
) -> None:
    """Attach a rotating file handler pointed at ``log_file`` if missing."""

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create log directory %s: %s", log_file.parent, exc)
        return

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            existing = getattr(handler, "baseFilename", None)
            if existing and Path(existing) == log_file.resolve():
                return

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)


def configure_logging(level: str, log_file: Path | None = None) -> None:
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
    )
    if log_file is not None:
        _ensure_rotating_file_handler(log_file)


def database_url(dbfile: str | None) -> str:
    """Translate the ``--dbfile`` argument into a SQLAlchemy URL."""

    if not dbfile:
        return "sqlite://"
    if "://" in dbfile:
        return dbfile
    return f"sqlite:///{Path(dbfile).as_posix()}"


def describe_objects(store: ConfigStore, objects: Sequence[ConfigObject]) -> list[dict[str, Any]]:
    """Render generated objects as plain dictionaries for YAML output."""

    def _ref(value: Any) -> Any:
        if isinstance(value, list):
            return [str(item) for item in value]
        return str(value) if value is not None else None

    rendered: list[dict[str, Any]] = []
    for obj in objects:
        rendered.append(
            {
                "uid": obj.uid,
                "class": obj.class_name,
                "file": store.file_of(obj),
                "values": store.values(obj),
                "references": {
                    name: _ref(value) for name, value in store.references(obj).items()
                },
            }
        )
    return rendered


def run_generation(
    *,
    config_dir: Path | None,
    app_uid: str | None,
    store: ConfigStore,
    dbfile: str,
    transactional: bool = True,
    strict_rules: bool = False,
) -> list[ConfigObject]:
    """Load the application, seed its templates and generate its modules."""

    config_service = ConfigService(config_dir=config_dir)
    app = config_service.application(app_uid)
    session = config_service.session()
    seed_templates(store, dbfile, app)
    modules = generate_modules(
        app,
        store,
        dbfile,
        session,
        transactional=transactional,
        strict_rules=strict_rules,
    )
    LOGGER.info("Generated %d modules for application %s", len(modules), app.uid)
    return modules


def dump_topology(store: ConfigStore, modules: Sequence[ConfigObject], stream: TextIO) -> None:
    """Write the generated modules and every object they reference as YAML."""

    seen: dict[ConfigObject, None] = {}
    pending = list(modules)
    while pending:
        obj = pending.pop(0)
        if obj in seen or not store.exists(obj.class_name, obj.uid):
            continue
        seen[obj] = None
        for ref in store.references(obj).values():
            if isinstance(ref, list):
                pending.extend(ref)
            elif ref is not None:
                pending.append(ref)
    yaml.safe_dump(describe_objects(store, list(seen)), stream, sort_keys=False)


def parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Readout application topology generator.")
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        help="Directory that contains readout.yaml/session.yaml (default: ./config).",
    )
    parser.add_argument(
        "--app",
        dest="app_uid",
        default=None,
        help="Uid of the application to generate (default: first declared).",
    )
    parser.add_argument(
        "--dbfile",
        default=None,
        help="SQLite file or SQLAlchemy URL of the configuration database (default: in-memory).",
    )
    parser.add_argument(
        "--no-transaction",
        action="store_true",
        help="Write objects directly instead of committing them after a successful run.",
    )
    parser.add_argument(
        "--strict-rules",
        action="store_true",
        help="Fail when more than one connection rule matches the same role.",
    )
    parser.add_argument(
        "--dump",
        action="store_true",
        help="Print the generated objects as YAML on stdout.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Optional rotating log file.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level, args.log_file)
    try:
        store = SqlConfigStore(database_url(args.dbfile))
        modules = run_generation(
            config_dir=args.config_dir,
            app_uid=args.app_uid,
            store=store,
            dbfile=args.dbfile or ":memory:",
            transactional=not args.no_transaction,
            strict_rules=args.strict_rules,
        )
        if args.dump:
            dump_topology(store, modules, sys.stdout)
    except (ConfigError, ConfigurationError) as exc:
        LOGGER.error("Configuration failed: %s", exc)
        return 2
    except StoreError as exc:
        LOGGER.error("Configuration store rejected the topology: %s", exc)
        return 3
    except Exception:  # pragma: no cover - surfaced to operator
        LOGGER.exception("Topology generation crashed.")
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())


__all__ = ["database_url", "dump_topology", "main", "run_generation"]
