# Service catalog lookup
from collections import Counter
from dataclasses import dataclass
from typing import List

from sqlalchemy import select

from app.errors import DuplicateCategory, UnknownService, ValidationError
from app.models import Service
from app.services.time_of_day import TimeOfDay
from app.utils.retry import retry_read


@dataclass(frozen=True)
class ServiceTotals:
    total_price: int
    total_duration: int
    categories: List[str]
    last_booking_time: TimeOfDay
    summary: str


def resolve_services(session, settings, service_ids):
    """
    Resolve requested ids to active services, in request order.

    All-or-nothing: any unknown or inactive id fails the whole lookup with
    UnknownService.
    """
    if not service_ids:
        raise ValidationError("Select at least one service")

    wanted = set(service_ids)

    def read():
        return session.scalars(
            select(Service).where(Service.id.in_(wanted), Service.is_active.is_(True))
        ).all()

    found = {s.id: s for s in retry_read(session, settings, "Service catalog", read)}
    missing = [i for i in service_ids if i not in found]
    if missing:
        raise UnknownService(missing)
    return [found[i] for i in service_ids]


def duplicate_categories(services):
    counts = Counter(s.category for s in services)
    return sorted(c for c, n in counts.items() if n > 1)


def ensure_distinct_categories(services):
    duplicates = duplicate_categories(services)
    if duplicates:
        raise DuplicateCategory(duplicates)


def summarize_services(services):
    return ServiceTotals(
        total_price=sum(s.price for s in services),
        total_duration=sum(s.duration for s in services),
        categories=[s.category for s in services],
        last_booking_time=min(TimeOfDay(s.last_booking_time) for s in services),
        summary=", ".join(s.name for s in services),
    )
