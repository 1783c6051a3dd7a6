import argparse
import importlib
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import create_db_engine
from core.logging import setup_logging
from models.ddl import to_metadata
from persistence.manager import EntityManager

logger = logging.getLogger(__name__)


def load_type(spec: str) -> type:
    """Import a record type given as "package.module:ClassName" """
    module_name, _, class_name = spec.partition(":")
    if not class_name:
        raise ValueError(f"Expected module:Class, got {spec!r}")
    return getattr(importlib.import_module(module_name), class_name)


def init_database(entities, url=None, dump=False):
    engine = create_db_engine(url)
    manager = EntityManager()
    for cls, table_name in entities:
        entity = manager.register(cls, table_name)
        logger.info(f"Creating tables of {table_name}...")
        to_metadata(entity).create_all(engine)
        if dump:
            manager.dump_queries(cls)

    manager.bind(engine)
    logger.info("Tables created successfully.")
    engine.dispose()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create the tables of registered aggregates")
    parser.add_argument(
        "--entity", action="append", required=True, metavar="MODULE:CLASS=TABLE",
        help="Record type and root table name, repeatable"
    )
    parser.add_argument("--url", default=None, help=f"Database URL (default: {settings.DATABASE_URL})")
    parser.add_argument("--dump", action="store_true", help="Log the generated statements")
    args = parser.parse_args(argv)

    entities = []
    for item in args.entity:
        spec, _, table_name = item.partition("=")
        if not table_name:
            parser.error(f"Missing table name in {item!r}")
        entities.append((load_type(spec), table_name))

    init_database(entities, url=args.url, dump=args.dump)


if __name__ == "__main__":
    setup_logging()
    main()
