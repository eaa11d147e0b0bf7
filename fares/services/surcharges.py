"""Surcharge rules.

Each rule kind is its own class with an ``applies(context)`` check, built from
the ``PRICING["SURCHARGES"]`` settings table. Days follow the booking UI
convention: 0 = Sunday .. 6 = Saturday.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Tuple

from django.core.exceptions import ImproperlyConfigured

DEFAULT_AIRPORT_KEYWORDS = ("airport", "luchthaven")
DEFAULT_SHORT_DISTANCE_KM = 3


@dataclass(frozen=True)
class SurchargeContext:
    pickup_time: datetime
    pickup_location: str = ""
    destination_location: str = ""
    distance_km: Decimal = Decimal("0")

    @property
    def hour(self) -> int:
        return self.pickup_time.hour

    @property
    def weekday(self) -> int:
        # isoweekday: Monday=1 .. Sunday=7
        return self.pickup_time.isoweekday() % 7


def _in_hours(hour: int, start: int, end: int) -> bool:
    if start <= end:
        return start <= hour < end
    # Window wraps past midnight, e.g. 22 -> 6
    return hour >= start or hour < end


@dataclass(frozen=True)
class SurchargeRule:
    name: str
    factor: Decimal
    description: str

    def applies(self, context: SurchargeContext) -> bool:
        raise NotImplementedError

    def amount(self, base_amount: Decimal) -> Decimal:
        return base_amount * (self.factor - 1)


@dataclass(frozen=True)
class ScheduleRule(SurchargeRule):
    """Applies when any configured predicate matches: hour window, explicit time ranges or day set."""
    hours: Optional[Tuple[int, int]] = None
    time_ranges: Tuple[Tuple[int, int], ...] = ()
    days: Tuple[int, ...] = ()

    def applies(self, context: SurchargeContext) -> bool:
        if self.hours and _in_hours(context.hour, *self.hours):
            return True
        if any(_in_hours(context.hour, start, end) for start, end in self.time_ranges):
            return True
        return context.weekday in self.days


@dataclass(frozen=True)
class RushHourRule(SurchargeRule):
    """Weekday AND one of the time ranges."""
    time_ranges: Tuple[Tuple[int, int], ...] = ()
    days: Tuple[int, ...] = (1, 2, 3, 4, 5)

    def applies(self, context: SurchargeContext) -> bool:
        if context.weekday not in self.days:
            return False
        return any(_in_hours(context.hour, start, end) for start, end in self.time_ranges)


@dataclass(frozen=True)
class HolidayRule(SurchargeRule):
    dates: Tuple[Tuple[int, int], ...] = ()

    def applies(self, context: SurchargeContext) -> bool:
        return (context.pickup_time.month, context.pickup_time.day) in self.dates


@dataclass(frozen=True)
class AirportPickupRule(SurchargeRule):
    keywords: Tuple[str, ...] = DEFAULT_AIRPORT_KEYWORDS

    def applies(self, context: SurchargeContext) -> bool:
        location = (context.pickup_location or "").lower()
        return any(keyword in location for keyword in self.keywords)


@dataclass(frozen=True)
class ShortDistanceRule(SurchargeRule):
    max_km: Decimal = Decimal(DEFAULT_SHORT_DISTANCE_KM)

    def applies(self, context: SurchargeContext) -> bool:
        return Decimal("0") < context.distance_km < self.max_km


def _pair(value) -> Tuple[int, int]:
    start, end = value
    return int(start), int(end)


def _list(cfg: Mapping, key: str, default=()):
    value = cfg.get(key)
    if value is None:
        return default
    if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, (list, tuple)):
        raise ValueError(f"{key} must be a list, got {value!r}")
    return value or default


def _schedule(name, factor, description, cfg):
    hours = _list(cfg, "hours")
    return ScheduleRule(
        name, factor, description,
        hours=_pair(hours) if hours else None,
        time_ranges=tuple(_pair(r) for r in _list(cfg, "time_ranges")),
        days=tuple(int(d) for d in _list(cfg, "days")),
    )


def _rush_hour(name, factor, description, cfg):
    return RushHourRule(
        name, factor, description,
        time_ranges=tuple(_pair(r) for r in _list(cfg, "time_ranges")),
        days=tuple(int(d) for d in _list(cfg, "days", (1, 2, 3, 4, 5))),
    )


def _holiday(name, factor, description, cfg):
    return HolidayRule(name, factor, description, dates=tuple(_pair(d) for d in _list(cfg, "dates")))


def _airport(name, factor, description, cfg):
    keywords = _list(cfg, "keywords", DEFAULT_AIRPORT_KEYWORDS)
    return AirportPickupRule(name, factor, description, keywords=tuple(str(k).lower() for k in keywords if str(k).strip()))


def _short_distance(name, factor, description, cfg):
    max_km = Decimal(str(cfg.get("max_km", DEFAULT_SHORT_DISTANCE_KM)))
    if not max_km.is_finite():
        raise ValueError(f"max_km must be finite, got {max_km}")
    return ShortDistanceRule(name, factor, description, max_km=max_km)


RULE_BUILDERS = {
    "schedule": _schedule,
    "rush_hour": _rush_hour,
    "holiday": _holiday,
    "airport": _airport,
    "short_distance": _short_distance,
}


def build_rule(name: str, config: Mapping) -> SurchargeRule:
    if not isinstance(config, Mapping):
        raise ImproperlyConfigured(f"Surcharge {name!r} must be a mapping, got {config!r}")
    kind = config.get("kind")
    builder = RULE_BUILDERS.get(kind) if isinstance(kind, str) else None
    if builder is None:
        raise ImproperlyConfigured(f"Surcharge {name!r} has unknown kind {kind!r}")
    try:
        factor = Decimal(str(config["factor"]))
    except (KeyError, ArithmeticError) as exc:
        raise ImproperlyConfigured(f"Surcharge {name!r} needs a numeric factor") from exc
    if isinstance(config["factor"], bool) or not factor.is_finite() or factor < 0:
        raise ImproperlyConfigured(f"Surcharge {name!r} factor must be a finite, non-negative number")
    try:
        return builder(name, factor, str(config.get("description", name)), config)
    except (TypeError, ValueError, ArithmeticError) as exc:
        raise ImproperlyConfigured(f"Surcharge {name!r} is malformed: {exc}") from exc


def build_rules(configs: Mapping[str, Mapping], overrides: Optional[Mapping[str, Mapping]] = None) -> List[SurchargeRule]:
    """Build the rule list, applying field-level overrides per rule name.

    An override may set ``enabled: False`` to switch a rule off, and may add a
    rule that is not in the base table if it carries a full config.
    """
    overrides = overrides or {}
    merged: Dict[str, dict] = {name: dict(cfg) for name, cfg in configs.items()}
    for name, patch in overrides.items():
        if not isinstance(patch, Mapping):
            raise ImproperlyConfigured(f"Surcharge override {name!r} must be a mapping, got {patch!r}")
        merged.setdefault(name, {}).update(patch)

    rules = []
    for name, cfg in merged.items():
        if not cfg.get("enabled", True):
            continue
        rules.append(build_rule(name, cfg))
    return rules
