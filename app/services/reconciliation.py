"""
Idempotent reconciliation of Shopify records into local mirror rows.

Each call is a single INSERT ... ON CONFLICT (unique key) DO UPDATE ... RETURNING id, so a webhook
and a batch sync racing on the same (brand_id, external id) cannot both insert; the last writer wins.
The insert carries a fresh primary key: if that key comes back the row was created, otherwise the
existing row (and its original id) was updated.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import PersistenceError
from app.models import ExternalOrder, ExternalProduct, ReconcileOutcome

logger = logging.getLogger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

# Never rewritten once the row exists
_IMMUTABLE_COLUMNS = {"id", "brand_id", "external_order_id", "external_product_id", "created_at", "received_at"}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReconcileResult:
    outcome: ReconcileOutcome
    record: Any

    @property
    def created(self) -> bool:
        return self.outcome == ReconcileOutcome.CREATED


def upsert_row(
    db: Session,
    model,
    conflict_columns: Sequence[str],
    values: dict,
    immutable: Sequence[str] = (),
) -> tuple[str, bool]:
    """
    Atomic insert-or-update of one row keyed on conflict_columns (must match a unique constraint).
    Every other column is fully replaced from values (missing keys become NULL) except id,
    conflict_columns and immutable. Returns (row id, created). Does not commit.
    """
    dialect = db.get_bind().dialect.name
    insert = _INSERT_BY_DIALECT.get(dialect)
    if insert is None:
        raise NotImplementedError(f"Atomic upsert not supported for dialect {dialect}")

    table = model.__table__
    new_id = str(uuid.uuid4())
    frozen = {"id", *conflict_columns, *immutable}
    row = {c.name: values.get(c.name) for c in table.columns if c.name != "id"}
    row["id"] = new_id

    stmt = insert(table).values(row)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(conflict_columns),
        set_={c.name: stmt.excluded[c.name] for c in table.columns if c.name not in frozen},
    ).returning(table.c.id)
    row_id = db.execute(stmt).scalar_one()
    return row_id, row_id == new_id


class ReconciliationEngine:
    """Creates or updates ExternalOrder / ExternalProduct rows. One transaction per record."""

    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.clock = clock or utcnow

    def reconcile_order(self, brand_id: str, external_order_id: str, candidate: dict) -> ReconcileResult:
        now = self.clock()
        values = dict(candidate, brand_id=brand_id, external_order_id=external_order_id, received_at=now, updated_at=now)
        return self._reconcile(ExternalOrder, "external_order_id", brand_id, external_order_id, values)

    def reconcile_product(self, brand_id: str, external_product_id: str, candidate: dict) -> ReconcileResult:
        now = self.clock()
        values = dict(
            candidate,
            brand_id=brand_id,
            external_product_id=external_product_id,
            last_sync_at=now,
            received_at=now,
            updated_at=now,
        )
        return self._reconcile(ExternalProduct, "external_product_id", brand_id, external_product_id, values)

    def _reconcile(self, model, key_column: str, brand_id: str, external_id: str, values: dict) -> ReconcileResult:
        entity = model.__tablename__
        try:
            row_id, created = upsert_row(
                self.db,
                model,
                ("brand_id", key_column),
                values,
                immutable=tuple(_IMMUTABLE_COLUMNS),
            )
            self.db.commit()
            record = self.db.get(model, row_id, populate_existing=True)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Reconcile %s failed brand=%s id=%s: %s", entity, brand_id, external_id, e)
            raise PersistenceError(entity, brand_id, external_id, e) from e

        outcome = ReconcileOutcome.CREATED if created else ReconcileOutcome.UPDATED
        logger.info("Reconciled %s %s for brand %s: %s", entity, external_id, brand_id, outcome.value)
        return ReconcileResult(outcome=outcome, record=record)
