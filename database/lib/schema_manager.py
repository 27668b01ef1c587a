"""Versioned schema installation.

Each database/schema/vN.py module exposes a `schema` dict: a version number,
a list of table definitions and, for upgrades, raw `migrations`. A fresh
database gets the latest version built from the table definitions; an older
one replays the migrations of every later version.

Table definitions are plain dicts:

    {
        'name': 'cart_items',
        'columns': [{'name': 'quantity', 'type': 'INT4', 'nullable': False, 'default': '1'}],
        'primary_key': ['cart_id', 'listing_id'],     # composite key, optional
        'checks': ['quantity >= 1'],
        'foreign_keys': [{'columns': ['cart_id'], 'references': 'carts(id)', 'on_delete': 'CASCADE'}],
        'indexes': [{'name': 'idx_x', 'columns': ['a'], 'unique': True, 'where': "status = 'open'"}]
    }
"""
import importlib
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional

from ..exceptions import DatabaseSchemaError

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).resolve().parent.parent / 'schema'


def column_sql(col: Dict[str, Any]) -> str:
    parts = [col['name'], col['type']]
    if 'default' in col:
        parts.append(f"DEFAULT {col['default']}")
    if col.get('nullable') is False:
        parts.append("NOT NULL")
    return ' '.join(parts)


def create_table_sql(table: Dict[str, Any]) -> str:
    """CREATE TABLE statement for a definition, without foreign keys."""
    body = [column_sql(col) for col in table['columns']]

    keyed = [col['name'] for col in table['columns'] if col.get('primary_key')]
    if table.get('primary_key'):
        keyed = list(table['primary_key'])
    if keyed:
        body.append(f"PRIMARY KEY ({', '.join(keyed)})")

    body += [f"UNIQUE ({col['name']})" for col in table['columns'] if col.get('unique')]
    body += [f"CHECK ({check})" for check in table.get('checks', [])]

    return f"CREATE TABLE {table['name']} (\n    " + ',\n    '.join(body) + "\n)"


def foreign_key_sql(table: Dict[str, Any]) -> List[str]:
    statements = []
    for fk in table.get('foreign_keys', []):
        name = f"fk_{table['name']}_{'_'.join(fk['columns'])}"
        on_delete = f" ON DELETE {fk['on_delete']}" if 'on_delete' in fk else ''
        statements.append(
            f"ALTER TABLE {table['name']} ADD CONSTRAINT {name} "
            f"FOREIGN KEY ({', '.join(fk['columns'])}) "
            f"REFERENCES {fk['references']}{on_delete}"
        )
    return statements


def index_sql(table: Dict[str, Any]) -> List[str]:
    statements = []
    for idx in table.get('indexes', []):
        unique = 'UNIQUE ' if idx.get('unique') else ''
        where = f" WHERE {idx['where']}" if idx.get('where') else ''
        statements.append(
            f"CREATE {unique}INDEX {idx['name']} "
            f"ON {table['name']} ({', '.join(idx['columns'])}){where}"
        )
    return statements


def schema_statements(schema: Dict[str, Any]) -> List[str]:
    """Every statement needed to build a schema on an empty database.

    Tables come first so foreign keys can point at any of them.
    """
    tables = schema.get('tables', [])
    statements = [create_table_sql(table) for table in tables]
    for table in tables:
        statements += foreign_key_sql(table)
        statements += index_sql(table)
    return statements


def owned_tables(schemas: Dict[int, Dict[str, Any]]) -> List[str]:
    """Every table name any schema version defines, newest version first."""
    names = []
    for version in sorted(schemas, reverse=True):
        for table in schemas[version].get('tables', []):
            if table['name'] not in names:
                names.append(table['name'])
    return names


def load_schemas(schema_dir: Path = SCHEMA_DIR) -> Dict[int, Dict[str, Any]]:
    """Import every vN.py schema module, keyed and sorted by version.

    Raises:
        DatabaseSchemaError: If a module has no schema or its version disagrees with its name
    """
    schemas = {}
    for file in Path(schema_dir).glob('v*.py'):
        try:
            version = int(file.stem[1:])
        except ValueError:
            logger.warning(f"Ignoring schema file {file.name}")
            continue

        module = importlib.import_module(f"database.schema.{file.stem}")
        schema = getattr(module, 'schema', None)
        if schema is None:
            raise DatabaseSchemaError(f"{file.name} has no 'schema' definition")
        if schema['version'] != version:
            raise DatabaseSchemaError(
                f"{file.name} declares version {schema['version']}, expected {version}"
            )
        schemas[version] = schema

    return dict(sorted(schemas.items()))


class SchemaManager:
    """Brings a database up to the latest schema version."""

    def __init__(self, pool, schema_dir: Optional[Path] = None) -> None:
        self.pool = pool
        self.schema_dir = Path(schema_dir) if schema_dir else SCHEMA_DIR
        self.current_version = 0

    async def initialize(self) -> None:
        """Record the installed version and apply whatever is newer.

        Raises:
            DatabaseSchemaError: If no schema exists or a statement fails
        """
        schemas = load_schemas(self.schema_dir)
        if not schemas:
            raise DatabaseSchemaError(f"No schema files in {self.schema_dir}")
        latest = max(schemas)

        try:
            async with self.pool.acquire() as conn:
                await conn.execute('''
                    CREATE TABLE IF NOT EXISTS schema_version (
                        version INT8 PRIMARY KEY,
                        applied_at TIMESTAMP NOT NULL DEFAULT now()
                    )
                ''')
                self.current_version = await conn.fetchval(
                    'SELECT COALESCE(MAX(version), 0) FROM schema_version'
                )

                if self.current_version >= latest:
                    logger.info(f"Schema is up to date at version {self.current_version}")
                    return

                async with conn.transaction():
                    if self.current_version == 0:
                        await self._install(conn, schemas[latest])
                    else:
                        await self._migrate(conn, schemas, latest)
        except DatabaseSchemaError:
            raise
        except Exception as e:
            logger.error(f"Schema initialization failed: {e}")
            raise DatabaseSchemaError(f"Failed to initialize schema: {e}")

        self.current_version = latest

    async def _install(self, conn, schema: Dict[str, Any]) -> None:
        await self.drop_tables(conn)
        for statement in schema_statements(schema):
            await conn.execute(statement)
        await conn.execute('INSERT INTO schema_version (version) VALUES ($1)', schema['version'])
        logger.info(f"Installed schema version {schema['version']}")

    async def _migrate(self, conn, schemas: Dict[int, Dict[str, Any]], latest: int) -> None:
        for version in range(self.current_version + 1, latest + 1):
            if version not in schemas:
                continue
            for migration in schemas[version].get('migrations', []):
                await conn.execute(migration)
            await conn.execute('INSERT INTO schema_version (version) VALUES ($1)', version)
            logger.info(f"Migrated schema to version {version}")

    async def drop_tables(self, conn, include_version: bool = False) -> None:
        """Drop the tables defined by any schema version.

        Tables the schema files do not define are left alone.

        Args:
            conn: Database connection
            include_version: Also drop schema_version, forcing a fresh install
        """
        names = owned_tables(load_schemas(self.schema_dir))
        if include_version:
            names.append('schema_version')

        for name in names:
            await conn.execute(f'DROP TABLE IF EXISTS "{name}" CASCADE')
            logger.info(f"Dropped table {name}")
