"""
Unit of work over the redirection store.

A TopologySession keeps an identity map of every entity it has loaded or been
handed, keyed by (type, id). Within one unit the same row always comes back as
the same instance, and staged entities are flushed before every query so that
lookups see them.

Usage:
    session = TopologySession(db)

    with session.required():
        port = session.add(Port(element_id="p1"))
        # ... more work; nested required() scopes join this unit ...
    # flushed and committed here, rolled back on exception
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Generator, Sequence, TypeVar

from .db import Database
from .models import FLUSH_ORDER, InspectionHook, InspectionPort, Port, PortGroup

logger = logging.getLogger(__name__)

E = TypeVar("E", Port, PortGroup, InspectionPort, InspectionHook)


class TopologySession:
    """Transactional scope plus identity map for topology entities."""

    def __init__(self, db: Database):
        self.db = db
        self._identity: dict[tuple[type, str], Any] = {}
        self._snapshots: dict[tuple[type, str], tuple] = {}
        self._depth = 0
        self._rollback_only = False

    # ------------------------------------------------------------------
    # Transaction scope
    # ------------------------------------------------------------------

    @property
    def in_unit(self) -> bool:
        return self._depth > 0

    @contextmanager
    def required(self) -> Generator[TopologySession, None, None]:
        """
        Join the open unit, or start one.

        The outermost scope flushes and commits on success and rolls back on
        an exception. An exception escaping a nested scope marks the whole
        unit rollback-only, even if an outer caller catches it. The identity
        map is cleared when the outermost scope ends.
        """
        if self._depth:
            self._depth += 1
            try:
                yield self
            except Exception:
                self._rollback_only = True
                raise
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            yield self
            if self._rollback_only:
                logger.warning("Unit marked rollback-only by a nested failure; rolling back")
                self.db.rollback()
            else:
                self.flush()
                self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        finally:
            self._depth = 0
            self._rollback_only = False
            self._clear()

    # ------------------------------------------------------------------
    # Identity map
    # ------------------------------------------------------------------

    def add(self, entity: E) -> E:
        """Stage an entity; it is inserted on the next flush."""
        key = (type(entity), entity.id)
        current = self._identity.get(key)
        if current is not None and current is not entity:
            raise ValueError(f"Another {type(entity).__name__} with id {entity.id} is already in the session")
        self._identity[key] = entity
        return entity

    def is_persistent(self, entity: Any) -> bool:
        """True once the entity has a row in the store (flushed or loaded)."""
        return (type(entity), entity.id) in self._snapshots

    def __contains__(self, entity: Any) -> bool:
        return self._identity.get((type(entity), entity.id)) is entity

    def _evict(self, model: type, entity_id: str) -> None:
        self._identity.pop((model, entity_id), None)
        self._snapshots.pop((model, entity_id), None)

    def _clear(self) -> None:
        self._identity.clear()
        self._snapshots.clear()

    def _register_loaded(self, model: type[E], row: tuple) -> E:
        key = (model, row[0])
        current = self._identity.get(key)
        if current is not None:
            return current

        entity = model.from_row(row)
        self._identity[key] = entity
        self._snapshots[key] = entity.to_row()
        self._load_derived(entity)
        return entity

    def _load_derived(self, entity: Any) -> None:
        """Fill in the back-references that live on the other side of a foreign key."""
        if isinstance(entity, Port):
            row = self.db.fetchone(
                "SELECT id FROM inspection_hook WHERE inspected_port_id = %s ORDER BY id",
                (entity.id,),
            )
            entity.inspection_hook_id = row[0] if row else None
        elif isinstance(entity, InspectionPort):
            rows = self.db.fetchall(
                "SELECT id FROM inspection_hook WHERE inspection_port_id = %s ORDER BY id",
                (entity.id,),
            )
            entity.hook_ids = [r[0] for r in rows]
        elif isinstance(entity, PortGroup):
            rows = self.db.fetchall(
                "SELECT id FROM port WHERE port_group_id = %s ORDER BY id",
                (entity.id,),
            )
            entity.port_ids = [r[0] for r in rows]

    # ------------------------------------------------------------------
    # Store primitives
    # ------------------------------------------------------------------

    def flush(self) -> None:
        """Insert staged entities and update modified ones, in foreign-key order."""
        for model in FLUSH_ORDER:
            pending = [(key, e) for key, e in self._identity.items() if key[0] is model]
            for key, entity in pending:
                row = entity.to_row()
                snapshot = self._snapshots.get(key)
                if snapshot is None:
                    self._insert(model, row)
                elif snapshot != row:
                    self._update(model, row)
                else:
                    continue
                self._snapshots[key] = row

    def _insert(self, model: type, row: tuple) -> None:
        columns = ", ".join(model.COLUMNS)
        placeholders = ", ".join(["%s"] * len(model.COLUMNS))
        self.db.execute(f"INSERT INTO {model.TABLE} ({columns}) VALUES ({placeholders})", row)
        logger.debug("Inserted %s %s", model.TABLE, row[0])

    def _update(self, model: type, row: tuple) -> None:
        assignments = ", ".join(f"{c} = %s" for c in model.COLUMNS[1:])
        self.db.execute(f"UPDATE {model.TABLE} SET {assignments} WHERE id = %s", (*row[1:], row[0]))
        logger.debug("Updated %s %s", model.TABLE, row[0])

    def get(self, model: type[E], entity_id: str | None) -> E | None:
        """Load by surrogate id. A missing row is None, not an error."""
        if entity_id is None:
            return None
        current = self._identity.get((model, entity_id))
        if current is not None:
            return current

        self.flush()
        columns = ", ".join(f"t.{c}" for c in model.COLUMNS)
        row = self.db.fetchone(f"SELECT {columns} FROM {model.TABLE} t WHERE t.id = %s", (entity_id,))
        if row is None:
            return None
        return self._register_loaded(model, row)

    def select(
        self,
        model: type[E],
        where: str = "1 = 1",
        params: Sequence[Any] = (),
        *,
        joins: str = "",
    ) -> list[E]:
        """
        Run a predicate query over one table, aliased as t.

        Results are ordered by ascending surrogate id, i.e. creation order.
        """
        self.flush()
        columns = ", ".join(f"t.{c}" for c in model.COLUMNS)
        sql = f"SELECT {columns} FROM {model.TABLE} t {joins} WHERE {where} ORDER BY t.id"
        rows = self.db.fetchall(sql, params)
        return [self._register_loaded(model, row) for row in rows]

    def count(
        self,
        model: type,
        where: str = "1 = 1",
        params: Sequence[Any] = (),
        *,
        joins: str = "",
    ) -> int:
        self.flush()
        row = self.db.fetchone(f"SELECT COUNT(*) FROM {model.TABLE} t {joins} WHERE {where}", params)
        return int(row[0]) if row else 0

    def delete(self, entity: Any) -> int:
        """Delete one entity's row by id and drop it from the session."""
        model = type(entity)
        self.flush()
        deleted = self.db.execute(f"DELETE FROM {model.TABLE} WHERE id = %s", (entity.id,))
        self._evict(model, entity.id)
        logger.debug("Deleted %s %s", model.TABLE, entity.id)
        return deleted

    def delete_where(self, model: type, where: str, params: Sequence[Any] = ()) -> int:
        """Bulk delete by predicate (table aliased as t). Returns the number of rows removed."""
        self.flush()
        ids = [row[0] for row in self.db.fetchall(f"SELECT t.id FROM {model.TABLE} t WHERE {where}", params)]
        if not ids:
            return 0

        placeholders = ", ".join(["%s"] * len(ids))
        deleted = self.db.execute(f"DELETE FROM {model.TABLE} WHERE id IN ({placeholders})", ids)
        for entity_id in ids:
            self._evict(model, entity_id)
        logger.debug("Deleted %d %s row(s)", deleted, model.TABLE)
        return deleted

    def close(self) -> None:
        self._clear()
        self.db.close()

    def __enter__(self) -> TopologySession:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
