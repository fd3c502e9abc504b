"""Container registry records and their live connectivity status."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from cidash.entities.enums import ConnectivityState


class Registry(BaseModel):
    """A container registry configured on the backend."""

    id: int
    name: str
    url: str
    username: Optional[str] = None
    description: Optional[str] = None
    is_online: Optional[bool] = Field(default=None, alias="isOnline")

    model_config = ConfigDict(populate_by_name=True)


class ConnectivityStatus(BaseModel):
    """
    Status owned by exactly one ConnectivityMonitor.

    Instances are immutable; every transition produces a new one.
    """

    state: ConnectivityState = ConnectivityState.IDLE
    message: str = ""
    last_checked: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_usable(self) -> bool:
        return self.state == ConnectivityState.CONNECTED
