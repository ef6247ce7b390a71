"""Peewee ORM models for the local bookmark database."""

from __future__ import annotations

import datetime as _dt
import uuid
from typing import Any

import peewee
from playhouse.sqlite_ext import JSONField

from raindrop_sync.core.time_utils import to_naive_utc, utc_now

# A proxy that will be initialised with the concrete database instance at runtime.
database_proxy: peewee.Database = peewee.DatabaseProxy()


class BaseModel(peewee.Model):
    """Base Peewee model bound to the lazily initialised database proxy."""

    class Meta:
        database = database_proxy
        legacy_table_names = False


def _utcnow() -> _dt.datetime:
    return to_naive_utc(utc_now())


def new_node_id() -> str:
    """Opaque 12-character id, the same width as the well-known folder ids."""
    return uuid.uuid4().hex[:12]


class BookmarkNode(BaseModel):
    """A folder (``url`` is NULL) or a bookmark in the local tree."""

    id = peewee.CharField(primary_key=True, max_length=32, default=new_node_id)
    parent = peewee.ForeignKeyField(
        "self", null=True, backref="children", on_delete="CASCADE", column_name="parent_id"
    )
    title = peewee.TextField(default="")
    url = peewee.TextField(null=True)
    position = peewee.IntegerField(default=0)
    created_at = peewee.DateTimeField(default=_utcnow)

    class Meta:
        table_name = "bookmark_nodes"
        indexes = (
            (("parent", "position"), False),
            (("title",), False),
        )


class SyncRun(BaseModel):
    """History of sync runs, used for the missed-schedule catch-up."""

    id = peewee.AutoField()
    correlation_id = peewee.TextField(null=True)
    mode = peewee.TextField()
    target_folder = peewee.TextField(null=True)
    trigger = peewee.TextField(default="manual")  # manual | scheduled | catch_up
    success = peewee.BooleanField(default=False)
    imported_count = peewee.IntegerField(default=0)
    error_message = peewee.TextField(null=True)
    not_found_json = JSONField(null=True)
    started_at = peewee.DateTimeField(default=_utcnow)
    finished_at = peewee.DateTimeField(null=True)

    class Meta:
        table_name = "sync_runs"
        indexes = ((("success", "finished_at"), False),)


ALL_MODELS: tuple[type[BaseModel], ...] = (
    BookmarkNode,
    SyncRun,
)


def model_to_dict(model: BaseModel | None) -> dict[str, Any] | None:
    """Convert a Peewee model instance to a plain dictionary."""
    if model is None:
        return None
    data: dict[str, Any] = {}
    for field_name in model._meta.sorted_field_names:
        value = getattr(model, field_name)
        if isinstance(value, peewee.Model):
            value = value.get_id()
        data[field_name] = value
    return data
