"""Typed views over ServerQuery records."""

from __future__ import annotations

from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field


class ClientType(IntEnum):
    """client_type values reported by the server."""

    REGULAR = 0
    SERVER_QUERY = 1


class ClientEntry(BaseModel):
    """A connected client as reported by clientlist or notifycliententerview."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    clid: int
    cid: int = Field(default=0, alias="ctid")
    nickname: str = Field(alias="client_nickname")
    client_type: ClientType = ClientType.REGULAR
    database_id: int | None = Field(default=None, alias="client_database_id")

    @classmethod
    def from_record(cls, record: dict[str, str]) -> ClientEntry:
        """Build from a clientlist record or an enter-view notification.

        clientlist reports the channel as "cid", enter-view as "ctid".
        """
        data = dict(record)
        if "cid" in data and "ctid" not in data:
            data["ctid"] = data.pop("cid")
        if "client_type" in data:
            data["client_type"] = int(data["client_type"] or 0)
        return cls.model_validate(data)

    @property
    def is_query(self) -> bool:
        return self.client_type == ClientType.SERVER_QUERY


class ChannelEntry(BaseModel):
    """A channel with its server-assigned display order."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    cid: int
    name: str = Field(alias="channel_name")
    order: int = Field(default=0, alias="channel_order")
    parent_id: int = Field(default=0, alias="pid")


class WhoAmI(BaseModel):
    """Reply to the whoami probe."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    virtualserver_status: str = "unknown"
    virtualserver_id: int = 0
    client_id: int = 0
    client_channel_id: int = 0
    client_nickname: str = ""


class ConnectParams(BaseModel):
    """Everything needed to open and prepare one query session."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int = 10011
    server_port: int = 9987
    username: str = ""
    password: str = ""
    nickname: str = "TSBot"
    keepalive_interval_s: float = 240.0
    query_timeout_ms: int = 5000
    debug: bool = False
