"""Per-stylist aggregation of the records logged in a cycle."""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..db_types import from_cents, to_cents
from .cycles import CycleService
from .errors import UserNotFoundError

LOGGER = logging.getLogger(__name__)

StatsKey = tuple[int, Optional[int]]

STATS_CACHE_TTL_ENV = "STATS_CACHE_TTL_SECONDS"
DEFAULT_STATS_CACHE_TTL = 30.0


def _read_ttl() -> float:
    raw = os.getenv(STATS_CACHE_TTL_ENV)
    if not raw:
        return DEFAULT_STATS_CACHE_TTL
    try:
        value = float(raw)
    except ValueError:
        LOGGER.warning("Ignoring non-numeric %s=%s", STATS_CACHE_TTL_ENV, raw)
        return DEFAULT_STATS_CACHE_TTL
    return max(value, 0.0)


class StatsCache:
    """Thread-safe memo of computed stats keyed by ``(cycle_id, user_id)``.

    Every invalidation bumps ``version``; a result computed from a read that
    started under an older version is not stored. Entries expire after
    ``ttl_seconds`` so writes made by other processes show up eventually.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[StatsKey, tuple[float, list[schemas.CycleStats]]] = {}
        self._lock = threading.Lock()
        self._version = 0
        self._ttl = _read_ttl() if ttl_seconds is None else ttl_seconds
        self._clock = clock

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def get(self, key: StatsKey) -> Optional[list[schemas.CycleStats]]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, cached = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
        return [item.model_copy(deep=True) for item in cached]

    def store(self, key: StatsKey, items: list[schemas.CycleStats], version: int) -> bool:
        """Memoise ``items`` unless an invalidation happened since ``version``."""

        copies = [item.model_copy(deep=True) for item in items]
        with self._lock:
            if version != self._version or self._ttl <= 0:
                return False
            self._entries[key] = (self._clock() + self._ttl, copies)
            return True

    def invalidate(self, cycle_id: Optional[int], user_id: Optional[int]) -> None:
        """Drop the entries a write to ``(cycle_id, user_id)`` makes stale."""

        with self._lock:
            self._version += 1
            if cycle_id is None:
                return
            self._entries.pop((cycle_id, user_id), None)
            self._entries.pop((cycle_id, None), None)

    def clear(self) -> None:
        with self._lock:
            self._version += 1
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


STATS_CACHE = StatsCache()


@dataclass
class _Accumulator:
    user_id: int
    stylist_name: str
    service_cents: int = 0
    product_cents: int = 0
    tip_cents: int = 0
    service_count: int = 0
    product_count: int = 0
    payment_cents: dict[str, int] = field(
        default_factory=lambda: {method.value: 0 for method in models.PaymentMethod}
    )

    def add(self, record: models.Record) -> None:
        price = to_cents(record.price or 0)
        if isinstance(record, models.ProductRecord):
            self.product_cents += price
            self.product_count += 1
        else:
            self.service_cents += price
            self.service_count += 1
        if record.tip is not None:
            self.tip_cents += to_cents(record.tip)
        for payment in record.payments:
            method = models.PaymentMethod(payment.method).value
            self.payment_cents[method] = self.payment_cents.get(method, 0) + to_cents(payment.amount)

    def to_schema(self) -> schemas.CycleStats:
        return schemas.CycleStats(
            user_id=self.user_id,
            stylist_name=self.stylist_name,
            total_service_price=from_cents(self.service_cents),
            total_product_price=from_cents(self.product_cents),
            total_tips=from_cents(self.tip_cents),
            service_count=self.service_count,
            product_count=self.product_count,
            payment_totals={
                method: from_cents(cents) for method, cents in self.payment_cents.items()
            },
        )


class StatisticsService:
    """Compute cycle statistics on demand."""

    @staticmethod
    def _participants(
        db: Session, cycle_id: int, user_id: Optional[int]
    ) -> list[models.User]:
        if user_id is not None:
            user = db.get(models.User, user_id)
            if user is None:
                raise UserNotFoundError(f"User {user_id} not found")
            return [user]

        owners = select(models.Record.user_id).where(models.Record.cycle_id == cycle_id)
        return (
            db.query(models.User)
            .filter(or_(models.User.role == models.UserRole.USER, models.User.id.in_(owners)))
            .order_by(models.User.stylist_name, models.User.id)
            .all()
        )

    @staticmethod
    def reduce(
        users: Iterable[models.User], records: Iterable[models.Record]
    ) -> list[schemas.CycleStats]:
        """Group ``records`` by owner and total them, one row per user."""

        accumulators: dict[int, _Accumulator] = {
            user.id: _Accumulator(user_id=user.id, stylist_name=user.stylist_name)
            for user in users
        }
        for record in records:
            accumulator = accumulators.get(record.user_id)
            if accumulator is None:
                owner = record.user
                accumulator = _Accumulator(
                    user_id=record.user_id,
                    stylist_name=owner.stylist_name if owner is not None else str(record.user_id),
                )
                accumulators[record.user_id] = accumulator
            accumulator.add(record)
        return [accumulator.to_schema() for accumulator in accumulators.values()]

    @classmethod
    def get_stats(
        cls,
        db: Session,
        cycle_id: int,
        user_id: Optional[int] = None,
        *,
        use_cache: bool = True,
    ) -> list[schemas.CycleStats]:
        CycleService.get_cycle(db, cycle_id)

        key = (cycle_id, user_id)
        if use_cache:
            cached = STATS_CACHE.get(key)
            if cached is not None:
                return cached

        version = STATS_CACHE.version
        users = cls._participants(db, cycle_id, user_id)
        query = (
            db.query(models.Record)
            .options(selectinload(models.Record.payments))
            .filter(models.Record.cycle_id == cycle_id)
        )
        if user_id is not None:
            query = query.filter(models.Record.user_id == user_id)
        items = cls.reduce(users, query.all())

        LOGGER.debug(
            "Computed stats for cycle %s (user %s): %s rows",
            cycle_id,
            user_id,
            len(items),
        )
        if use_cache:
            STATS_CACHE.store(key, items, version)
        return items

    @classmethod
    def get_cycle_summary(
        cls, db: Session, cycle_id: int, user_id: Optional[int] = None
    ) -> schemas.CycleStatsResponse:
        cycle = CycleService.get_cycle(db, cycle_id)
        items = cls.get_stats(db, cycle_id, user_id)

        payment_totals: dict[str, int] = {}
        for item in items:
            for method, amount in item.payment_totals.items():
                payment_totals[method] = payment_totals.get(method, 0) + to_cents(amount)

        totals = schemas.CycleTotals(
            total_service_price=from_cents(sum(to_cents(item.total_service_price) for item in items)),
            total_product_price=from_cents(sum(to_cents(item.total_product_price) for item in items)),
            total_tips=from_cents(sum(to_cents(item.total_tips) for item in items)),
            service_count=sum(item.service_count for item in items),
            product_count=sum(item.product_count for item in items),
            payment_totals={method: from_cents(cents) for method, cents in payment_totals.items()},
        )
        return schemas.CycleStatsResponse(
            cycle=schemas.CycleRead.model_validate(cycle),
            items=items,
            totals=totals,
        )
