# src/tablemapper/core/__init__.py
"""Core infrastructure: Database, Query helpers, Hooks, Configuration, Logging, Mapper."""

from tablemapper.core.config import (
    DatabaseSettings,
    LoggingSettings,
    MapperSettings,
    load_settings,
)
from tablemapper.core.database import MapperDatabase
from tablemapper.core.hooks import (
    HookDispatcherProtocol,
    NullHookDispatcher,
    PluggyHookDispatcher,
    hookimpl,
    hookspec,
)
from tablemapper.core.logging import (
    configure_logging,
    get_logger,
)
from tablemapper.core.mapper import DataMapper, SyncResult
from tablemapper.core.query import JoinRegistry, MapperQuery

__all__ = [
    "DataMapper",
    "DatabaseSettings",
    "HookDispatcherProtocol",
    "JoinRegistry",
    "LoggingSettings",
    "MapperDatabase",
    "MapperQuery",
    "MapperSettings",
    "NullHookDispatcher",
    "PluggyHookDispatcher",
    "SyncResult",
    "configure_logging",
    "get_logger",
    "hookimpl",
    "hookspec",
    "load_settings",
]
