from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Dict, List, Mapping, Optional, Tuple
import logging

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils import timezone

from .surcharges import SurchargeContext, SurchargeRule, build_rules

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
VEHICLE_FIELDS = ("base", "per_km", "per_minute", "minimum")


class InvalidVehicleClass(ValueError):
    def __init__(self, vehicle_type):
        self.vehicle_type = vehicle_type
        super().__init__(f"Unknown vehicle class: {vehicle_type!r}")


def _to_decimal(value, default: Decimal = ZERO) -> Decimal:
    """Lenient conversion for trip figures: missing, non-numeric, negative or non-finite values become the default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default
    if not number.is_finite() or number < 0:
        return default
    return number


def _config_decimal(value, name: str) -> Decimal:
    """Strict conversion for pricing settings and overrides: finite and non-negative, or ImproperlyConfigured."""
    if value is None or isinstance(value, bool):
        raise ImproperlyConfigured(f"Pricing setting {name} is not numeric: {value!r}")
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ImproperlyConfigured(f"Pricing setting {name} is not numeric: {value!r}") from exc
    if not number.is_finite() or number < 0:
        raise ImproperlyConfigured(f"Pricing setting {name} must be a finite, non-negative number: {value!r}")
    return number


@dataclass(frozen=True)
class VehiclePricing:
    base: Decimal
    per_km: Decimal
    per_minute: Decimal
    minimum: Decimal

    @classmethod
    def from_config(cls, cfg: Mapping, name: str = "") -> "VehiclePricing":
        return cls(**{f: _config_decimal(cfg.get(f, 0), f"{name}.{f}") for f in VEHICLE_FIELDS})

    def with_overrides(self, overrides: Optional[Mapping]) -> "VehiclePricing":
        if not overrides:
            return self
        values = {f: getattr(self, f) for f in VEHICLE_FIELDS}
        for f in VEHICLE_FIELDS:
            if overrides.get(f) is not None:
                values[f] = _config_decimal(overrides[f], f"override.{f}")
        return VehiclePricing(**values)


@dataclass(frozen=True)
class PricingOverrides:
    """Admin-tunable pricing. Every part is field-level: unspecified fields keep the configured value."""
    vehicle_rates: Dict[str, dict] = field(default_factory=dict)
    surcharges: Dict[str, dict] = field(default_factory=dict)
    tax_rate: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping]) -> Optional["PricingOverrides"]:
        if not data:
            return None
        return cls(
            vehicle_rates={str(k).lower(): _patch(v, f"vehicle_rates.{k}") for k, v in _section(data, "vehicle_rates").items()},
            surcharges={str(k): _patch(v, f"surcharges.{k}") for k, v in _section(data, "surcharges").items()},
            tax_rate=data.get("tax_rate"),
        )

    def validate(self, config: Optional["PricingConfig"] = None) -> None:
        """Raise ImproperlyConfigured if any override would not price."""
        config = config or PricingConfig.from_settings()
        for name, patch in self.vehicle_rates.items():
            for f in VEHICLE_FIELDS:
                if patch.get(f) is not None:
                    _config_decimal(patch[f], f"override.{name}.{f}")
        if self.tax_rate is not None:
            _config_decimal(self.tax_rate, "override.tax_rate")
        build_rules(config.surcharges, self.surcharges)


def _section(data: Mapping, name: str) -> Mapping:
    section = data.get(name) or {}
    if not isinstance(section, Mapping):
        raise ImproperlyConfigured(f"Pricing override {name} must be a mapping")
    return section


def _patch(value, name: str) -> dict:
    if not isinstance(value, Mapping):
        raise ImproperlyConfigured(f"Pricing override {name} must be a mapping, got {value!r}")
    return dict(value)


@dataclass(frozen=True)
class PriceCalculationParams:
    vehicle_type: str
    distance_km: Optional[float] = None
    duration_min: Optional[float] = None
    pickup_time: Optional[datetime] = None
    pickup_location: Optional[str] = None
    destination_location: Optional[str] = None
    has_stopover: bool = False
    is_return: bool = False
    overrides: Optional[PricingOverrides] = None


@dataclass(frozen=True)
class AppliedSurcharge:
    name: str
    description: str
    amount: Decimal
    type: str = "percentage"

    def to_dict(self) -> dict:
        return {"name": self.name, "description": self.description, "amount": float(self.amount), "type": self.type}


@dataclass(frozen=True)
class PriceBreakdown:
    base_price: Decimal
    distance_price: Decimal
    time_price: Decimal
    surcharges: Tuple[AppliedSurcharge, ...]
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    minimum: Decimal
    currency: str
    estimated_only: bool
    minimum_applied: bool = False

    def to_dict(self) -> dict:
        return {
            "base_price": float(self.base_price),
            "distance_price": float(self.distance_price),
            "time_price": float(self.time_price),
            "surcharges": [s.to_dict() for s in self.surcharges],
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "total": float(self.total),
            "minimum": float(self.minimum),
            "currency": self.currency,
            "estimated_only": self.estimated_only,
            "minimum_applied": self.minimum_applied,
        }


@dataclass(frozen=True)
class VehicleQuote:
    vehicle_type: str
    price: PriceBreakdown

    def to_dict(self) -> dict:
        return {"vehicle_type": self.vehicle_type, "price": self.price.to_dict()}


@dataclass(frozen=True)
class PriceValidation:
    valid: bool
    warnings: List[str]

    def to_dict(self) -> dict:
        return {"valid": self.valid, "warnings": list(self.warnings)}


@dataclass(frozen=True)
class PricingConfig:
    vehicle_rates: Dict[str, VehiclePricing]
    surcharges: Dict[str, dict]
    tax_rate: Decimal
    currency: str
    precision: int
    free_minutes: Decimal
    stopover_rate: Decimal
    stopover_minimum: Decimal
    return_discount: Decimal
    estimate_minutes_per_km: Decimal
    estimate_default_km: Decimal
    warn_total: Decimal
    max_valid_total: Decimal

    @classmethod
    def from_settings(cls) -> "PricingConfig":
        cfg = settings.PRICING
        return cls(
            vehicle_rates={
                name.lower(): VehiclePricing.from_config(rates, name)
                for name, rates in cfg.get("VEHICLE_RATES", {}).items()
            },
            surcharges=dict(cfg.get("SURCHARGES", {})),
            tax_rate=_config_decimal(cfg.get("TAX_RATE", 0), "TAX_RATE"),
            currency=cfg.get("CURRENCY", "EUR"),
            precision=int(cfg.get("ROUNDING_PRECISION", 2)),
            free_minutes=_config_decimal(cfg.get("FREE_MINUTES", 15), "FREE_MINUTES"),
            stopover_rate=_config_decimal(cfg.get("STOPOVER_RATE", 0.10), "STOPOVER_RATE"),
            stopover_minimum=_config_decimal(cfg.get("STOPOVER_MINIMUM", 2.50), "STOPOVER_MINIMUM"),
            return_discount=_config_decimal(cfg.get("RETURN_DISCOUNT", 0.10), "RETURN_DISCOUNT"),
            estimate_minutes_per_km=_config_decimal(cfg.get("ESTIMATE_MINUTES_PER_KM", 2), "ESTIMATE_MINUTES_PER_KM"),
            estimate_default_km=_config_decimal(cfg.get("ESTIMATE_DEFAULT_KM", 5), "ESTIMATE_DEFAULT_KM"),
            warn_total=_config_decimal(cfg.get("WARN_TOTAL", 500), "WARN_TOTAL"),
            max_valid_total=_config_decimal(cfg.get("MAX_VALID_TOTAL", 1000), "MAX_VALID_TOTAL"),
        )


class PricingService:
    """PricingService calculates fare breakdowns according to business rules.

    Rules summary (implemented, in order):
    - base fare per vehicle class, plus distance_km * per_km
    - time: only minutes beyond the first 15 are charged, at per_minute
    - surcharges (night, weekend, holiday, rush hour, airport pickup, short
      distance) each add (base + distance) * (factor - 1); they never compound
    - the vehicle minimum is applied to the subtotal
    - a stopover adds 10% of the floored subtotal, at least 2.50
    - a return trip takes 10% off, after the stopover surcharge
    - tax is charged on the final subtotal

    All intermediate math uses unrounded Decimals; each breakdown field is
    rounded half-up on its own, so the rounded parts may differ from the
    rounded subtotal by a cent.
    """

    @staticmethod
    def _round(value: Decimal, precision: int = 2) -> Decimal:
        return value.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP)

    @staticmethod
    def _pickup_time(value: Optional[datetime]) -> datetime:
        if value is None:
            return timezone.localtime()
        if timezone.is_aware(value):
            return timezone.localtime(value)
        return value

    @classmethod
    def vehicle_classes(cls) -> List[str]:
        return list(PricingConfig.from_settings().vehicle_rates)

    @classmethod
    def vehicle_pricing(cls, vehicle_type: str, overrides: Optional[PricingOverrides] = None,
                        config: Optional[PricingConfig] = None) -> VehiclePricing:
        config = config or PricingConfig.from_settings()
        key = (vehicle_type or "").lower()
        rates = config.vehicle_rates.get(key)
        if rates is None:
            raise InvalidVehicleClass(vehicle_type)
        return rates.with_overrides(overrides.vehicle_rates.get(key) if overrides else None)

    @classmethod
    def calculate(cls, params: PriceCalculationParams) -> PriceBreakdown:
        config = PricingConfig.from_settings()
        overrides = params.overrides
        pricing = cls.vehicle_pricing(params.vehicle_type, overrides, config)
        pickup_time = cls._pickup_time(params.pickup_time)

        distance = _to_decimal(params.distance_km)
        duration = _to_decimal(params.duration_min)

        base_price = pricing.base
        distance_price = distance * pricing.per_km
        time_price = max(ZERO, duration - config.free_minutes) * pricing.per_minute

        # Surcharges scale with base + distance only
        base_amount = base_price + distance_price
        context = SurchargeContext(
            pickup_time=pickup_time,
            pickup_location=params.pickup_location or "",
            destination_location=params.destination_location or "",
            distance_km=distance,
        )
        rules = build_rules(config.surcharges, overrides.surcharges if overrides else None)
        applied = cls._surcharges(rules, context, base_amount)
        surcharge_total = sum((amount for _, amount in applied), ZERO)

        subtotal = base_price + distance_price + time_price + surcharge_total
        minimum_applied = subtotal < pricing.minimum
        subtotal = max(subtotal, pricing.minimum)

        if params.has_stopover:
            subtotal += max(subtotal * config.stopover_rate, config.stopover_minimum)

        if params.is_return:
            subtotal *= 1 - config.return_discount

        tax_rate = config.tax_rate
        if overrides and overrides.tax_rate is not None:
            tax_rate = _config_decimal(overrides.tax_rate, "override.tax_rate")
        tax = subtotal * tax_rate

        p = config.precision
        breakdown = PriceBreakdown(
            base_price=cls._round(base_price, p),
            distance_price=cls._round(distance_price, p),
            time_price=cls._round(time_price, p),
            surcharges=tuple(
                AppliedSurcharge(rule.name, rule.description, cls._round(amount, p))
                for rule, amount in applied
            ),
            subtotal=cls._round(subtotal, p),
            tax=cls._round(tax, p),
            total=cls._round(subtotal + tax, p),
            minimum=cls._round(pricing.minimum, p),
            currency=config.currency,
            estimated_only=distance == ZERO,
            minimum_applied=minimum_applied,
        )
        logger.debug("Priced %s: %s %s (estimated=%s)", params.vehicle_type, breakdown.total, breakdown.currency, breakdown.estimated_only)
        return breakdown

    @staticmethod
    def _surcharges(rules: List[SurchargeRule], context: SurchargeContext, base_amount: Decimal):
        applied = []
        for rule in rules:
            if not rule.applies(context):
                continue
            amount = rule.amount(base_amount)
            if amount > ZERO:
                applied.append((rule, amount))
        return applied

    @classmethod
    def calculate_from_distance(cls, vehicle_type: str, distance_result, **context) -> PriceBreakdown:
        """Price a trip from a DistanceResult; an error result prices as estimated-only."""
        return cls.calculate(PriceCalculationParams(
            vehicle_type=vehicle_type,
            distance_km=distance_result.distance_km,
            duration_min=distance_result.duration_min,
            **context,
        ))

    @classmethod
    def get_estimate_price(cls, vehicle_type: str, estimated_distance_km: Optional[float] = None,
                           pickup_time: Optional[datetime] = None) -> PriceBreakdown:
        """Quote before a real route is known, assuming 2 minutes of driving per km."""
        config = PricingConfig.from_settings()
        if estimated_distance_km is None:
            distance = config.estimate_default_km
        else:
            distance = _to_decimal(estimated_distance_km)
        return cls.calculate(PriceCalculationParams(
            vehicle_type=vehicle_type,
            distance_km=distance,
            duration_min=distance * config.estimate_minutes_per_km,
            pickup_time=pickup_time,
        ))

    @classmethod
    def compare_prices(cls, params: PriceCalculationParams) -> List[VehicleQuote]:
        """Price the same trip for every configured vehicle class, cheapest first."""
        pickup_time = cls._pickup_time(params.pickup_time)
        quotes = []
        for vehicle_type in cls.vehicle_classes():
            quote_params = PriceCalculationParams(
                vehicle_type=vehicle_type,
                distance_km=params.distance_km,
                duration_min=params.duration_min,
                pickup_time=pickup_time,
                pickup_location=params.pickup_location,
                destination_location=params.destination_location,
                has_stopover=params.has_stopover,
                is_return=params.is_return,
                overrides=params.overrides,
            )
            quotes.append(VehicleQuote(vehicle_type, cls.calculate(quote_params)))
        return sorted(quotes, key=lambda q: q.price.total)

    @classmethod
    def validate_price(cls, breakdown: PriceBreakdown) -> PriceValidation:
        """Sanity check for display; it must not block a booking on its own."""
        config = PricingConfig.from_settings()
        warnings = []
        if breakdown.total > config.warn_total:
            warnings.append("Check the route - unusually high price")
        if breakdown.estimated_only:
            warnings.append("Price is estimated - final price may change")
        valid = ZERO < breakdown.total < config.max_valid_total
        return PriceValidation(valid=valid, warnings=warnings)
