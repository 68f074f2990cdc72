"""Read-only data sources of the Tailscale provider."""

from .acl import ACLDataSource
from .device import DeviceDataSource, DevicesDataSource
from .user import UserDataSource, UsersDataSource
from .via6 import Via6DataSource

DATA_SOURCES = (
    DeviceDataSource,
    DevicesDataSource,
    Via6DataSource,
    ACLDataSource,
    UserDataSource,
    UsersDataSource,
)

__all__ = [
    "DATA_SOURCES",
    "ACLDataSource",
    "DeviceDataSource",
    "DevicesDataSource",
    "UserDataSource",
    "UsersDataSource",
    "Via6DataSource",
]
