"""Projection of a registry's connectivity monitor into badge, labels and action gating."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from cidash.entities import ConnectivityState, Registry
from cidash.services.connectivity import ConnectivityMonitor
from cidash.utils.datetime import relative_time

BADGES = {
    ConnectivityState.IDLE: "Not Checked",
    ConnectivityState.CONNECTING: "Connecting",
    ConnectivityState.CONNECTED: "Connected",
    ConnectivityState.ERROR: "Connection Failed",
}


class RegistryView(BaseModel):
    registry_id: int
    name: str
    badge: str
    message: str
    last_checked: str
    test_button_label: str
    test_button_enabled: bool
    live_button_label: str

    # Mutating actions are allowed only while the registry is reachable
    can_delete: bool
    can_edit: bool
    can_open_images: bool
    images_button_label: str


def project_registry(
    registry: Registry,
    monitor: Optional[ConnectivityMonitor],
    now: Optional[datetime] = None,
) -> RegistryView:
    usable = monitor is not None and monitor.is_usable
    state = monitor.state if monitor is not None else ConnectivityState.IDLE
    testing = monitor is not None and monitor.testing
    live = monitor is not None and monitor.live_monitoring

    return RegistryView(
        registry_id=registry.id,
        name=registry.name,
        badge=BADGES[state],
        message=monitor.status.message if monitor is not None else "",
        last_checked=relative_time(monitor.status.last_checked if monitor else None, now),
        test_button_label="Testing..." if testing else "Test Connection",
        test_button_enabled=not testing,
        live_button_label="Stop Monitoring" if live else "Live Monitor",
        can_delete=usable,
        can_edit=usable,
        can_open_images=usable,
        images_button_label="Manage Images" if usable else "Registry is offline",
    )
