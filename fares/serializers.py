from django.core.exceptions import ImproperlyConfigured
from rest_framework import serializers

from .services.geo import LocationPoint
from .services.pricing import PriceCalculationParams, PricingOverrides


class TripSerializer(serializers.Serializer):
    """Trip context shared by the price endpoints.

    Locations are given as an address, coordinates, or both; the address is
    also used for keyword surcharges (airport pickup).
    """
    distance_km = serializers.FloatField(required=False, allow_null=True, min_value=0)
    duration_min = serializers.FloatField(required=False, allow_null=True, min_value=0)

    pickup_address = serializers.CharField(max_length=512, required=False, allow_blank=True, default='')
    pickup_lat = serializers.FloatField(required=False, allow_null=True, min_value=-90, max_value=90)
    pickup_lng = serializers.FloatField(required=False, allow_null=True, min_value=-180, max_value=180)
    dropoff_address = serializers.CharField(max_length=512, required=False, allow_blank=True, default='')
    dropoff_lat = serializers.FloatField(required=False, allow_null=True, min_value=-90, max_value=90)
    dropoff_lng = serializers.FloatField(required=False, allow_null=True, min_value=-180, max_value=180)
    waypoints = serializers.ListField(child=serializers.CharField(max_length=512), required=False, default=list)

    pickup_time = serializers.DateTimeField(required=False, allow_null=True)
    has_stopover = serializers.BooleanField(default=False)
    is_return = serializers.BooleanField(default=False)
    overrides = serializers.JSONField(required=False, allow_null=True)

    @staticmethod
    def _location(data, prefix):
        point = LocationPoint.parse((data.get(f'{prefix}_lat'), data.get(f'{prefix}_lng')))
        if point is not None:
            return point
        return (data.get(f'{prefix}_address') or '').strip() or None

    def validate_overrides(self, value):
        if value in (None, {}):
            return None
        if not isinstance(value, dict):
            raise serializers.ValidationError("overrides must be an object")
        for section in ('vehicle_rates', 'surcharges'):
            if not isinstance(value.get(section) or {}, dict):
                raise serializers.ValidationError(f"overrides.{section} must be an object")
        try:
            PricingOverrides.from_dict(value).validate()
        except ImproperlyConfigured as exc:
            raise serializers.ValidationError(str(exc))
        return value

    def validate(self, data):
        data['origin'] = self._location(data, 'pickup')
        data['destination'] = self._location(data, 'dropoff')
        return data

    def needs_distance(self) -> bool:
        data = self.validated_data
        return not data.get('distance_km') and data['origin'] is not None and data['destination'] is not None

    def to_params(self, vehicle_type, distance_km=None, duration_min=None) -> PriceCalculationParams:
        data = self.validated_data
        return PriceCalculationParams(
            vehicle_type=vehicle_type,
            distance_km=distance_km if distance_km is not None else data.get('distance_km'),
            duration_min=duration_min if duration_min is not None else data.get('duration_min'),
            pickup_time=data.get('pickup_time'),
            pickup_location=data.get('pickup_address') or None,
            destination_location=data.get('dropoff_address') or None,
            has_stopover=data.get('has_stopover', False),
            is_return=data.get('is_return', False),
            overrides=PricingOverrides.from_dict(data.get('overrides')),
        )


class PriceEstimateSerializer(TripSerializer):
    vehicle_type = serializers.CharField(max_length=32)


class DistanceRequestSerializer(serializers.Serializer):
    pickup_address = serializers.CharField(max_length=512, required=False, allow_blank=True, default='')
    pickup_lat = serializers.FloatField(required=False, allow_null=True, min_value=-90, max_value=90)
    pickup_lng = serializers.FloatField(required=False, allow_null=True, min_value=-180, max_value=180)
    dropoff_address = serializers.CharField(max_length=512, required=False, allow_blank=True, default='')
    dropoff_lat = serializers.FloatField(required=False, allow_null=True, min_value=-90, max_value=90)
    dropoff_lng = serializers.FloatField(required=False, allow_null=True, min_value=-180, max_value=180)
    waypoints = serializers.ListField(child=serializers.CharField(max_length=512), required=False, default=list)

    def validate(self, data):
        data['origin'] = TripSerializer._location(data, 'pickup')
        data['destination'] = TripSerializer._location(data, 'dropoff')
        missing = [name for name in ('origin', 'destination') if data[name] is None]
        if missing:
            raise serializers.ValidationError(f"An address or coordinates are required for: {', '.join(missing)}")
        return data
