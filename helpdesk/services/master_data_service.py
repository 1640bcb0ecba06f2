"""
Master Data Resolver.

Supplies option lists for dropdown-style catalog fields, keyed by a
``data_type`` tag ("branch", "bank", "terminal", "application", "menu", ...).
The dataset is maintained by external import tooling; this module only reads.

The resolver is injected where it is needed (catalog option resolution,
field validation, ticket intake) as a ``MasterDataSource``:

    SqlMasterDataSource     — reads master_data_entries (the app default)
    StaticMasterDataSource  — fixed in-memory option sets (tests, fixtures)

An unknown data_type yields an empty list rather than an error: a field may
reference a list that has not been populated yet.
"""

import logging
from typing import Protocol

from flask import current_app
from sqlalchemy import func, or_

from helpdesk.models import db
from helpdesk.models.master_data import MasterDataEntry

logger = logging.getLogger(__name__)


class MasterDataSource(Protocol):
    """Read-only provider of active master-data options."""

    def list_active(self, data_type: str) -> list[dict]:
        """Return ``[{code, displayName, metadata}]`` ordered for display."""
        ...


class SqlMasterDataSource:
    """MasterDataSource backed by the master_data_entries table."""

    def list_active(self, data_type: str) -> list[dict]:
        if not data_type:
            return []
        rows = (
            MasterDataEntry.query
            .filter_by(data_type=data_type, is_active=True)
            .order_by(MasterDataEntry.sort_order, MasterDataEntry.display_name)
            .all()
        )
        if not rows:
            logger.debug("No active master data for data_type=%s", data_type)
        return [r.to_option() for r in rows]


class StaticMasterDataSource:
    """MasterDataSource over a fixed mapping of data_type → options.

    Options may be given as ``{code, displayName, metadata?}`` dicts or as
    plain ``(code, displayName)`` pairs.
    """

    def __init__(self, mapping: dict[str, list] | None = None) -> None:
        self._mapping = {}
        for data_type, entries in (mapping or {}).items():
            self._mapping[data_type] = [self._coerce(e) for e in entries]

    @staticmethod
    def _coerce(entry) -> dict:
        if isinstance(entry, dict):
            return {
                "code": entry["code"],
                "displayName": entry.get("displayName", entry["code"]),
                "metadata": entry.get("metadata", {}),
            }
        code, display_name = entry
        return {"code": code, "displayName": display_name, "metadata": {}}

    def list_active(self, data_type: str) -> list[dict]:
        return [dict(e) for e in self._mapping.get(data_type, [])]


def get_default_source() -> MasterDataSource:
    """Return the source registered on the running app (SQL-backed by default)."""
    source = current_app.extensions.get("master_data_source")
    if source is None:
        source = SqlMasterDataSource()
        current_app.extensions["master_data_source"] = source
    return source


def list_active(data_type: str, source: MasterDataSource | None = None) -> list[dict]:
    """Return active options for ``data_type`` from ``source`` (or the app default)."""
    return (source or get_default_source()).list_active(data_type)


def search(
    data_type: str,
    term: str | None = None,
    parent_code: str | None = None,
    include_inactive: bool = False,
    limit: int = 200,
) -> list[dict]:
    """Case-insensitive search over code and display name within one data_type.

    Args:
        data_type: Master-data tag to search in.
        term: Optional substring matched against code and display_name.
        parent_code: Optional parent filter (e.g. branches of one region).
        include_inactive: Include deactivated entries (admin screens).
        limit: Maximum rows returned.

    Returns:
        List of serialized MasterDataEntry dicts, display-ordered.
    """
    q = MasterDataEntry.query.filter_by(data_type=data_type)
    if not include_inactive:
        q = q.filter_by(is_active=True)
    if parent_code:
        q = q.filter_by(parent_code=parent_code)
    if term:
        pattern = f"%{term.strip().lower()}%"
        q = q.filter(
            or_(
                func.lower(MasterDataEntry.code).like(pattern),
                func.lower(MasterDataEntry.display_name).like(pattern),
            )
        )
    rows = (
        q.order_by(MasterDataEntry.sort_order, MasterDataEntry.display_name)
        .limit(limit)
        .all()
    )
    return [r.to_dict() for r in rows]


def list_data_types() -> list[dict]:
    """Return every populated data_type with its active entry count."""
    rows = (
        db.session.query(MasterDataEntry.data_type, func.count(MasterDataEntry.id))
        .filter(MasterDataEntry.is_active.is_(True))
        .group_by(MasterDataEntry.data_type)
        .order_by(MasterDataEntry.data_type)
        .all()
    )
    return [{"data_type": dt, "count": count} for dt, count in rows]
