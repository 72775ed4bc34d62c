"""Device configuration and view selection."""

from .registry import (
    ConnectionState,
    Device,
    DeviceChanges,
    DeviceRegistry,
    View,
    ViewKind,
    generate_device_id,
    resolve_default_view,
)

__all__ = [
    "ConnectionState",
    "Device",
    "DeviceChanges",
    "DeviceRegistry",
    "View",
    "ViewKind",
    "generate_device_id",
    "resolve_default_view",
]
