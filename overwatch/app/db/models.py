from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from overwatch.app.core.utils import utc_now
from overwatch.app.db.base import Base

PUNISHMENT_TYPES = ("Warn", "Kick", "Ban", "Ban Bolo")


class Server(Base):
    __tablename__ = "servers"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String)
    custom_name: Mapped[str | None] = mapped_column(String, nullable=True)
    api_key: Mapped[str] = mapped_column(String, default="")
    raid_alert_channel_id: Mapped[str | None] = mapped_column(String, nullable=True)
    staff_role_id: Mapped[str | None] = mapped_column(String, nullable=True)
    subscription_plan: Mapped[str] = mapped_column(String(20), default="free")

    @property
    def display_name(self) -> str:
        return self.custom_name or self.name


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    server_id: Mapped[str] = mapped_column(ForeignKey("servers.id"))
    name: Mapped[str] = mapped_column(String)
    quota_minutes: Mapped[int] = mapped_column(Integer, default=0)


class Member(Base):
    """Server-scoped staff registration, keyed by Roblox id."""

    __tablename__ = "members"
    __table_args__ = (
        UniqueConstraint("server_id", "user_id", name="uq_members_server_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    server_id: Mapped[str] = mapped_column(ForeignKey("servers.id"))
    user_id: Mapped[str] = mapped_column(String)  # Roblox id
    role_id: Mapped[int | None] = mapped_column(ForeignKey("roles.id"), nullable=True)
    discord_id: Mapped[str | None] = mapped_column(String, nullable=True)

    role: Mapped[Role | None] = relationship(lazy="selectin")
    server: Mapped[Server] = relationship(lazy="selectin")

    @property
    def quota_minutes(self) -> int:
        return self.role.quota_minutes if self.role is not None else 0


class LogEntry(Base):
    """Persisted join/kill/command log line.

    The PRC API provides no log ids, so ``(server_id, type, prc_timestamp)``
    is the identity of a log line.
    """

    __tablename__ = "logs"
    __table_args__ = (
        UniqueConstraint("server_id", "type", "prc_timestamp", name="uq_logs_server_type_ts"),
        Index("idx_logs_server_ts", "server_id", "prc_timestamp"),
        Index("idx_logs_server_type_created", "server_id", "type", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    server_id: Mapped[str] = mapped_column(ForeignKey("servers.id"))
    type: Mapped[str] = mapped_column(String(16))  # join | kill | command
    prc_timestamp: Mapped[int] = mapped_column(BigInteger)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    # join / command
    player_name: Mapped[str | None] = mapped_column(String, nullable=True)
    player_id: Mapped[str | None] = mapped_column(String, nullable=True)
    is_join: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # kill
    killer_name: Mapped[str | None] = mapped_column(String, nullable=True)
    killer_id: Mapped[str | None] = mapped_column(String, nullable=True)
    victim_name: Mapped[str | None] = mapped_column(String, nullable=True)
    victim_id: Mapped[str | None] = mapped_column(String, nullable=True)

    # command
    command: Mapped[str | None] = mapped_column(Text, nullable=True)
    arguments: Mapped[str | None] = mapped_column(Text, nullable=True)


class Punishment(Base):
    __tablename__ = "punishments"
    __table_args__ = (
        Index("idx_punishments_server_user", "server_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    server_id: Mapped[str] = mapped_column(ForeignKey("servers.id"))
    user_id: Mapped[str] = mapped_column(String)  # Target Roblox id
    moderator_id: Mapped[str] = mapped_column(String)  # Issuer Roblox id
    type: Mapped[str] = mapped_column(String(16))
    reason: Mapped[str] = mapped_column(Text)
    resolved: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)


class Shift(Base):
    """On-duty period. ``end_time`` is NULL while the shift is active."""

    __tablename__ = "shifts"
    __table_args__ = (
        Index("idx_shifts_server_user_end", "server_id", "user_id", "end_time"),
        Index("idx_shifts_server_start", "server_id", "start_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    server_id: Mapped[str] = mapped_column(ForeignKey("servers.id"))
    user_id: Mapped[str] = mapped_column(String)
    start_time: Mapped[datetime] = mapped_column(DateTime)
    end_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # seconds

    @property
    def is_active(self) -> bool:
        return self.end_time is None


class ShutdownEvent(Base):
    """Latest in-game shutdown per server, kept for dashboard display."""

    __tablename__ = "shutdown_events"

    server_id: Mapped[str] = mapped_column(ForeignKey("servers.id"), primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime)
    initiated_by: Mapped[str] = mapped_column(String)
    shifts_ended: Mapped[int] = mapped_column(Integer, default=0)
    affected_user_ids: Mapped[list] = mapped_column(JSON, default=list)


class BotQueueMessage(Base):
    """Outbound chat-platform message, delivered by the bot process."""

    __tablename__ = "bot_queue"
    __table_args__ = (
        Index("idx_bot_queue_status_created", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    server_id: Mapped[str] = mapped_column(ForeignKey("servers.id"))
    type: Mapped[str] = mapped_column(String(16))  # MESSAGE | DM
    target_id: Mapped[str] = mapped_column(String)
    content: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(16), default="PENDING")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
