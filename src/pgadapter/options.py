import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from pgadapter.exceptions import ConfigurationError
from pgadapter.utils import underscore

__all__ = [
    'DatabaseOptions',
    'load_profiles',
    'SUPPORTED_DRIVERS',
]

SUPPORTED_DRIVERS = ('postgresql',)

REQUIRED_OPTIONS = ('hostname', 'username', 'database')


def _scriptname() -> str | None:
    name = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else ''
    return os.path.splitext(name)[0] or None


@dataclass
class DatabaseOptions:
    """Options

    supported driver names: `postgresql`

    Query options:
    - schema: Default PostgreSQL schema for model tables (default: public)
    - query_timeout: Server-side statement timeout in seconds (default: 30)

    Connection pooling options:
    - pool_max_connections: Maximum connections in pool (default: 5)
    - pool_max_overflow: Connections allowed beyond the pool size (default: 10)
    - pool_max_idle_time: Seconds before a pooled connection is recycled (default: 300)
    - pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)
    """
    drivername: str = 'postgresql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 5432
    timeout: int = 0
    appname: str = None
    schema: str = 'public'
    query_timeout: int = 30
    debug: bool = False
    # Connection pooling parameters
    pool_max_connections: int = 5
    pool_max_overflow: int = 10
    pool_max_idle_time: int = 300
    pool_wait_timeout: int = 30

    def __post_init__(self):
        if self.drivername not in SUPPORTED_DRIVERS:
            raise ConfigurationError(f'drivername must be one of: {list(SUPPORTED_DRIVERS)}')
        for name in REQUIRED_OPTIONS:
            if not getattr(self, name):
                raise ConfigurationError(f'field {name} cannot be None or empty')
        if self.query_timeout is not None and self.query_timeout < 0:
            raise ConfigurationError('query_timeout cannot be negative')
        if self.pool_max_connections < 1:
            raise ConfigurationError('pool_max_connections must be at least 1')
        self.schema = self.schema or 'public'
        self.appname = self.appname or _scriptname() or 'python_console'

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> 'DatabaseOptions':
        """Build options from a configuration mapping.

        Keys may be camelCase; `host`, `user` and `name` are accepted as
        aliases of `hostname`, `username` and `database`.
        """
        aliases = {'host': 'hostname', 'user': 'username', 'name': 'database',
                   'db': 'database', 'application_name': 'appname'}
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in mapping.items():
            name = underscore(key)
            name = aliases.get(name, name)
            if name not in known:
                raise ConfigurationError(f'Unknown database option: {key}')
            kwargs[name] = value
        return cls(**kwargs)


def load_profiles(mapping: Mapping[str, Any]) -> dict[str, DatabaseOptions]:
    """Build named connection profiles.

    >>> profiles = load_profiles({'default': {'hostname': 'db', 'username': 'app',
    ...                                       'database': 'main'}})
    >>> profiles['default'].schema
    'public'
    """
    if not mapping:
        raise ConfigurationError('No database profiles configured')
    profiles = {}
    for name, options in mapping.items():
        if isinstance(options, DatabaseOptions):
            profiles[name] = options
        elif isinstance(options, Mapping):
            profiles[name] = DatabaseOptions.from_mapping(options)
        else:
            raise ConfigurationError(f'Profile {name} must be a mapping')
    return profiles
