"""
This module builds, parses and sanitizes PostgreSQL connection descriptors, and turns them into SQLAlchemy URLs.

Connection strings use the driver style "Key=Value;Key=Value" form. A SQLAlchemy URL
("postgresql+psycopg://user@host/db") is also accepted wherever a connection string is.

Functions:
- build_connection_descriptor: Build a ConnectionDescriptor from the PG* environment variables.
- build_connection_string: Build a connection string from the PG* environment variables.
- parse_connection_string: Parse a "Key=Value;..." string into a ConnectionDescriptor.
- to_connection_string: Serialize a ConnectionDescriptor into a "Key=Value;..." string.
- get_sanitized_connection_string: Return a connection string with the password removed.
- set_application_name: Return a copy of a descriptor with a new application name.
- append_to_application_name: Return a copy of a descriptor with a suffix added to its application name.
- to_sqlalchemy_url: Convert a connection string or descriptor into a SQLAlchemy URL.
- get_db_engine: Create an engine that opens one unpooled connection per checkout.
- get_search_path: Return the search path of an open PostgreSQL connection.
- log_search_path: Log the search path of an open connection to debug.
"""
import dataclasses
import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.pool import NullPool

from pgview2csv.exceptions import ConfigurationError

# Environment variables read by build_connection_descriptor, mapped to descriptor fields
ENVIRONMENT_KEYS = {
    "PGHOST": "host",
    "PGUSER": "username",
    "PGPORT": "port",
    "PGDATABASE": "database",
    "PGPASSWORD": "password",
}

# Serialization order of the connection string, with the key written for each field
CONNECTION_STRING_KEYS = [
    ("host", "Host"),
    ("port", "Port"),
    ("username", "Username"),
    ("password", "Password"),
    ("database", "Database"),
    ("application_name", "Application Name"),
]

# Accepted spellings of each key when parsing, compared lower case
KEY_ALIASES = {
    "host": "host",
    "server": "host",
    "port": "port",
    "username": "username",
    "user": "username",
    "user id": "username",
    "userid": "username",
    "user name": "username",
    "password": "password",
    "pwd": "password",
    "psw": "password",
    "database": "database",
    "db": "database",
    "application name": "application_name",
    "applicationname": "application_name",
}

DRIVER_NAME = "postgresql+psycopg"


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Database connection parameters. Fields left as None are not set."""

    host: Optional[str] = None
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    application_name: Optional[str] = None

    def is_empty(self):
        """Return True if no field is set."""
        return all(getattr(self, field) is None for field, _ in CONNECTION_STRING_KEYS)


ConnectionLike = Union[str, ConnectionDescriptor]


def _parse_port(value):
    """Convert a port value to an int, raising ConfigurationError if it is not an integer."""
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Port must be an integer, got '{value}'.") from None


def build_connection_descriptor(environment: Mapping[str, str]) -> ConnectionDescriptor:
    """
    Build a connection descriptor from a dictionary of environment variables.

    Only PGHOST, PGUSER, PGPORT, PGDATABASE and PGPASSWORD are read. A variable that is
    missing, or empty after trimming, leaves its field unset.

    Args:
        environment (Mapping[str, str]): Usually os.environ.

    Returns:
        ConnectionDescriptor: The descriptor, possibly with no field set.

    Raises:
        ConfigurationError: If PGPORT is set but is not an integer.
    """
    if environment is None:
        raise ConfigurationError("No environment mapping provided.")

    fields = {}
    for env_key, field in ENVIRONMENT_KEYS.items():
        value = environment.get(env_key)
        if value is None or not str(value).strip():
            continue
        value = str(value).strip()
        fields[field] = _parse_port(value) if field == "port" else value

    return ConnectionDescriptor(**fields)


def build_connection_string(environment: Mapping[str, str]) -> str:
    """Build a connection string from the PG* environment variables. Returns '' if none are set."""
    return to_connection_string(build_connection_descriptor(environment))


def _quote_value(value):
    """Wrap a value in double quotes if it would not survive parsing as is."""
    if (
        any(char in value for char in ';="\'')
        or value != value.strip()
        or value == ""
    ):
        return '"' + value.replace('"', '""') + '"'
    return value


def to_connection_string(descriptor: ConnectionDescriptor) -> str:
    """
    Serialize a descriptor into a "Key=Value;..." connection string.

    Keys are always written in the same order and unset fields are left out.
    """
    parts = []
    for field, key in CONNECTION_STRING_KEYS:
        value = getattr(descriptor, field)
        if value is None:
            continue
        parts.append(f"{key}={_quote_value(str(value))}")
    return ";".join(parts)


def _split_segments(connection_string):
    """Yield the (key, value) pairs of a connection string, honoring double quoted values."""
    i = 0
    length = len(connection_string)
    while i < length:
        # Reads the key up to '='
        end = connection_string.find("=", i)
        separator = connection_string.find(";", i)
        if separator != -1 and (end == -1 or separator < end):
            segment = connection_string[i:separator].strip()
            if segment:
                raise ConfigurationError(f"Invalid connection string segment '{segment}'.")
            i = separator + 1
            continue
        if end == -1:
            segment = connection_string[i:].strip()
            if segment:
                raise ConfigurationError(f"Invalid connection string segment '{segment}'.")
            return
        key = connection_string[i:end].strip()
        i = end + 1

        # Skips leading whitespace of the value
        while i < length and connection_string[i] in " \t":
            i += 1

        if i < length and connection_string[i] == '"':
            chars = []
            i += 1
            while True:
                if i >= length:
                    raise ConfigurationError(f"Unterminated quoted value for '{key}'.")
                if connection_string[i] == '"':
                    if i + 1 < length and connection_string[i + 1] == '"':
                        chars.append('"')
                        i += 2
                        continue
                    i += 1
                    break
                chars.append(connection_string[i])
                i += 1
            value = "".join(chars)
            rest = connection_string.find(";", i)
            trailing = connection_string[i:] if rest == -1 else connection_string[i:rest]
            if trailing.strip():
                raise ConfigurationError(f"Unexpected text after quoted value for '{key}'.")
            i = length if rest == -1 else rest + 1
        else:
            rest = connection_string.find(";", i)
            value = (connection_string[i:] if rest == -1 else connection_string[i:rest]).strip()
            i = length if rest == -1 else rest + 1

        yield key, value


def parse_connection_string(connection_string: str) -> ConnectionDescriptor:
    """
    Parse a "Key=Value;..." connection string into a descriptor.

    Keys are case insensitive and common aliases (Server, User Id, Pwd, Db, ...) are accepted.

    Raises:
        ConfigurationError: If a key is unknown, a segment has no '=' or the port is not an integer.
    """
    fields = {}
    for key, value in _split_segments(connection_string or ""):
        field = KEY_ALIASES.get(" ".join(key.lower().split()))
        if field is None:
            raise ConfigurationError(f"Unknown connection string keyword '{key}'.")
        fields[field] = _parse_port(value) if field == "port" else value
    return ConnectionDescriptor(**fields)


def is_url(connection_string):
    """Return True if the connection string is a SQLAlchemy URL rather than "Key=Value;..." text."""
    return "://" in connection_string.split(";", 1)[0]


def _to_descriptor(connection):
    """Return the descriptor for a connection string or descriptor."""
    if isinstance(connection, ConnectionDescriptor):
        return connection
    return parse_connection_string(connection)


def get_sanitized_connection_string(connection: ConnectionLike) -> str:
    """
    Get the connection string without its password, for logging.

    Args:
        connection (str or ConnectionDescriptor): A "Key=Value;..." string, a SQLAlchemy URL or a descriptor.

    Returns:
        str: The same serialized form with the password removed if it was set.
    """
    if isinstance(connection, str) and is_url(connection):
        try:
            url = make_url(connection)
        except ArgumentError as e:
            raise ConfigurationError(f"Invalid database URL: {e}") from e
        return url.set(password=None).render_as_string(hide_password=False)

    descriptor = dataclasses.replace(_to_descriptor(connection), password=None)
    return to_connection_string(descriptor)


def set_application_name(descriptor: ConnectionDescriptor, application_name: str) -> ConnectionDescriptor:
    """
    Return a copy of the descriptor with the application name set to application_name.

    Note: Connections with different application names are not pooled together, so the PostgreSQL
    connection limit may need to be increased.
    """
    return dataclasses.replace(descriptor, application_name=application_name)


def append_to_application_name(
    descriptor: ConnectionDescriptor, application_name: str, separator: str = "_"
) -> ConnectionDescriptor:
    """
    Append a string to the application name of a descriptor.

    If the descriptor has no application name, it is simply set. Calling this twice appends twice;
    no check is made for a suffix that is already present.

    Args:
        descriptor (ConnectionDescriptor): The descriptor to copy.
        application_name (str): The text to append.
        separator (str): Placed between the existing name and the appended text.

    Returns:
        ConnectionDescriptor: The updated copy.
    """
    if not descriptor.application_name:
        return set_application_name(descriptor, application_name)
    return set_application_name(
        descriptor, f"{descriptor.application_name}{separator}{application_name}"
    )


def to_sqlalchemy_url(connection: ConnectionLike) -> URL:
    """
    Convert a connection string or descriptor into a SQLAlchemy URL.

    SQLAlchemy URLs are passed through unchanged. Descriptors use the psycopg PostgreSQL driver and
    carry the application name as the application_name query parameter.
    """
    if isinstance(connection, str) and is_url(connection):
        try:
            return make_url(connection)
        except ArgumentError as e:
            raise ConfigurationError(f"Invalid database URL: {e}") from e

    descriptor = _to_descriptor(connection)
    query = {}
    if descriptor.application_name is not None:
        query["application_name"] = descriptor.application_name
    return URL.create(
        DRIVER_NAME,
        username=descriptor.username,
        password=descriptor.password,
        host=descriptor.host,
        port=descriptor.port,
        database=descriptor.database,
        query=query,
    )


def get_db_engine(connection: ConnectionLike):
    """
    Create a database engine for the connection.

    The engine does not pool connections, so closing the connection closes it on the server.

    Returns:
        sqlalchemy.engine.base.Engine: The database engine object.
    """
    return create_engine(to_sqlalchemy_url(connection), poolclass=NullPool)


def get_search_path(conn):
    """Return the actual search path of an open PostgreSQL connection."""
    return conn.execute(text("show search_path")).scalar()


def log_search_path(conn, connection, logger=None):
    """
    Log the search path of the connection to debug, together with the sanitized connection string.

    Does nothing for databases other than PostgreSQL.
    """
    logger = logger or logging.getLogger(__name__)
    if conn.dialect.name != "postgresql":
        return
    logger.debug(
        f"Search path: {get_search_path(conn)} ({get_sanitized_connection_string(connection)})"
    )
