# models.py
import sqlalchemy
from slot_exchange.database import metadata

#'users' table
users = sqlalchemy.Table(
    "users",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("username", sqlalchemy.String, unique=True, index=True),
    sqlalchemy.Column("full_name", sqlalchemy.String),
    sqlalchemy.Column("email", sqlalchemy.String, unique=True, index=True),
    sqlalchemy.Column("hashed_password", sqlalchemy.String),
)

#'slots' table
slots = sqlalchemy.Table(
    "slots",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.String(32), primary_key=True),
    sqlalchemy.Column("title", sqlalchemy.String, nullable=False),
    sqlalchemy.Column("start_time", sqlalchemy.DateTime(timezone=True), nullable=False),
    sqlalchemy.Column("end_time", sqlalchemy.DateTime(timezone=True), nullable=False),
    sqlalchemy.Column("owner_id", sqlalchemy.Integer, index=True, nullable=False),
    sqlalchemy.Column("status", sqlalchemy.String(16), nullable=False, default="BUSY"),
)

# Slot and user references are plain ids: a request outlives a deleted slot.
swap_requests = sqlalchemy.Table(
    "swap_requests",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.String(32), primary_key=True),
    sqlalchemy.Column("offered_slot_id", sqlalchemy.String(32), index=True, nullable=False),
    sqlalchemy.Column("target_slot_id", sqlalchemy.String(32), index=True, nullable=False),
    sqlalchemy.Column("requester_id", sqlalchemy.Integer, index=True, nullable=False),
    sqlalchemy.Column("target_owner_id", sqlalchemy.Integer, index=True, nullable=False),
    sqlalchemy.Column("status", sqlalchemy.String(16), nullable=False, default="PENDING"),
    sqlalchemy.Column("created_at", sqlalchemy.DateTime(timezone=True), nullable=False),
    sqlalchemy.Column("resolved_at", sqlalchemy.DateTime(timezone=True), nullable=True),
)
