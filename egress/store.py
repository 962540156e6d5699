"""Read-only sources for the desired relay state."""

from abc import ABC, abstractmethod
import logging
import os
from typing import Any, Dict, Iterable, List, Optional

import sqlalchemy
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from egress.config import Settings, SettingsError
from egress.errors import StoreUnavailableError, TemplateNotFoundError
from egress.renderer import Destination

logger = logging.getLogger(__name__)

TEMPLATE_SETTING_KEY = 'nginx_template'

metadata = sqlalchemy.MetaData()

settings_table = sqlalchemy.Table(
    'settings',
    metadata,
    sqlalchemy.Column('key', sqlalchemy.Text, primary_key=True),
    sqlalchemy.Column('value', sqlalchemy.Text, nullable=False),
)

streams_table = sqlalchemy.Table(
    'streams',
    metadata,
    sqlalchemy.Column('id', sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column('name', sqlalchemy.Text, nullable=False),
    sqlalchemy.Column('rtmp_url', sqlalchemy.Text, nullable=False),
    sqlalchemy.Column('stream_key', sqlalchemy.Text, nullable=False),
    sqlalchemy.Column('enabled', sqlalchemy.Integer, server_default='1'),
)


class DesiredStateStore(ABC):
    """Interface for reading the active template and destinations."""

    @abstractmethod
    def get_template(self) -> Optional[str]:
        """Return the active template, or None if none is stored."""

    @abstractmethod
    def list_destinations(self) -> List[Destination]:
        """Return all destinations in insertion order."""


class StaticStateStore(DesiredStateStore):
    """Store holding fixed values, for file-driven deployments."""

    def __init__(
        self,
        template: Optional[str],
        destinations: Iterable[Destination] = ()
    ) -> None:
        self.template = template
        self.destinations = list(destinations)

    def get_template(self) -> Optional[str]:
        return self.template

    def list_destinations(self) -> List[Destination]:
        return list(self.destinations)


class SqliteStateStore(DesiredStateStore):
    """Store backed by the admin application's SQLite database.

    Reads the ``settings`` row keyed ``nginx_template`` and the ``streams``
    table. The database is opened read-only.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._engine: Optional[Engine] = None

    @property
    def engine(self) -> Engine:
        """Read-only engine for the database, created on first use."""
        if self._engine is None:
            self._engine = sqlalchemy.create_engine(
                f"sqlite:///file:{self.db_path}?mode=ro&uri=true",
                connect_args={'check_same_thread': False},
                poolclass=NullPool
            )
        return self._engine

    def _connect(self) -> Connection:
        if not os.path.isfile(self.db_path):
            raise StoreUnavailableError(f"Database not found: {self.db_path}")
        return self.engine.connect()

    def _has_table(self, name: str) -> bool:
        try:
            return sqlalchemy.inspect(self.engine).has_table(name)
        except SQLAlchemyError:
            return False

    def get_template(self) -> Optional[str]:
        """Return the stored template.

        Raises:
            TemplateNotFoundError: If the settings table does not exist
            StoreUnavailableError: If the database cannot be read
        """
        query = sqlalchemy.select(settings_table.c.value).where(
            settings_table.c.key == TEMPLATE_SETTING_KEY
        )
        try:
            with self._connect() as conn:
                return conn.execute(query).scalar()
        except SQLAlchemyError as e:
            if not self._has_table(settings_table.name):
                logger.error("Database %s has no settings table", self.db_path)
                raise TemplateNotFoundError() from e
            raise StoreUnavailableError(
                f"Failed to read template from {self.db_path}: {e}"
            ) from e

    def list_destinations(self) -> List[Destination]:
        query = sqlalchemy.select(streams_table).order_by(streams_table.c.id)
        try:
            with self._connect() as conn:
                rows = conn.execute(query).fetchall()
        except SQLAlchemyError as e:
            raise StoreUnavailableError(
                f"Failed to read streams from {self.db_path}: {e}"
            ) from e
        return [
            Destination(
                id=row.id,
                name=row.name,
                target_url=row.rtmp_url,
                secret_key=row.stream_key,
                enabled=bool(row.enabled)
            ) for row in rows
        ]


class SecretSource(ABC):
    """Interface for reading the ingest key."""

    @abstractmethod
    def get_ingest_key(self) -> Optional[str]:
        """Return the ingest key, or None if it is not set."""


class EnvironmentSecretSource(SecretSource):
    """Reads the ingest key from an environment variable."""

    def __init__(self, variable: str = 'INGEST_KEY') -> None:
        self.variable = variable

    def get_ingest_key(self) -> Optional[str]:
        return os.environ.get(self.variable)


def destination_from_dict(data: Dict[str, Any], index: int) -> Destination:
    """Build a destination from a settings-file entry.

    Args:
        data: Mapping with 'target_url' and 'secret_key' plus optional
            'id', 'name' and 'enabled'
        index: Position in the list, used as the default id

    Returns:
        Destination object

    Raises:
        SettingsError: If a required key is missing or 'enabled' is not
            a boolean
    """
    enabled = data.get('enabled', True)
    if not isinstance(enabled, bool):
        raise SettingsError(
            f"Destination {index + 1} 'enabled' must be true or false"
        )
    try:
        return Destination(
            id=int(data.get('id', index + 1)),
            name=str(data.get('name', f"destination-{index + 1}")),
            target_url=data['target_url'],
            secret_key=str(data['secret_key']),
            enabled=enabled
        )
    except KeyError as e:
        raise SettingsError(f"Destination {index + 1} is missing {e}") from e


def build_store(settings: Settings) -> DesiredStateStore:
    """Create the desired-state store described by the settings."""
    store = settings.store
    if store.type == 'sqlite':
        logger.info("Reading desired state from %s", store.path)
        return SqliteStateStore(store.path)

    logger.info("Reading template from %s", store.template_file)
    with open(store.template_file, 'r', encoding='utf-8') as f:
        template = f.read()
    destinations = [
        destination_from_dict(entry, i)
        for i, entry in enumerate(store.destinations)
    ]
    return StaticStateStore(template, destinations)
