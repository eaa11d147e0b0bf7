import logging
from django.core.exceptions import ImproperlyConfigured
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status

from .serializers import DistanceRequestSerializer, PriceEstimateSerializer, TripSerializer
from .services.distance import STATUS_ERROR, get_distance_service
from .services.pricing import InvalidVehicleClass, PricingConfig, PricingService

logger = logging.getLogger(__name__)

ROUTE_FAILED_MESSAGE = "Could not calculate price, try a different route"


def _resolve_distance(serializer):
    """Look up the route when the client did not send a distance. Returns None when not needed."""
    if not serializer.needs_distance():
        return None
    data = serializer.validated_data
    return get_distance_service().resolve(data['origin'], data['destination'], data.get('waypoints') or None)


class PriceEstimateView(APIView):
    """Estimate a fare without creating a booking. Accepts distance_km or pickup/dropoff locations."""

    def post(self, request):
        serializer = PriceEstimateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        distance = _resolve_distance(serializer)
        if distance is not None and distance.status == STATUS_ERROR:
            logger.warning("Price estimate without route: %s", distance.error_message)
            return Response({"detail": ROUTE_FAILED_MESSAGE, "distance": distance.to_dict()}, status=status.HTTP_400_BAD_REQUEST)

        params = serializer.to_params(
            serializer.validated_data['vehicle_type'],
            distance_km=distance.distance_km if distance else None,
            duration_min=distance.duration_min if distance else None,
        )
        try:
            breakdown = PricingService.calculate(params)
        except InvalidVehicleClass as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except ImproperlyConfigured as exc:
            if params.overrides is None:
                raise
            return Response({"overrides": [str(exc)]}, status=status.HTTP_400_BAD_REQUEST)

        return Response({
            "price": breakdown.to_dict(),
            "validation": PricingService.validate_price(breakdown).to_dict(),
            "distance": distance.to_dict() if distance else None,
        })


class PriceCompareView(APIView):
    """Price the same trip for every vehicle class, cheapest first."""

    def post(self, request):
        serializer = TripSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        distance = _resolve_distance(serializer)
        if distance is not None and distance.status == STATUS_ERROR:
            return Response({"detail": ROUTE_FAILED_MESSAGE, "distance": distance.to_dict()}, status=status.HTTP_400_BAD_REQUEST)

        params = serializer.to_params(
            None,
            distance_km=distance.distance_km if distance else None,
            duration_min=distance.duration_min if distance else None,
        )
        try:
            quotes = PricingService.compare_prices(params)
        except ImproperlyConfigured as exc:
            if params.overrides is None:
                raise
            return Response({"overrides": [str(exc)]}, status=status.HTTP_400_BAD_REQUEST)
        return Response({
            "quotes": [q.to_dict() for q in quotes],
            "distance": distance.to_dict() if distance else None,
        })


class DistanceView(APIView):
    def post(self, request):
        serializer = DistanceRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = get_distance_service().resolve(data['origin'], data['destination'], data.get('waypoints') or None)
        return Response(result.to_dict())


class VehicleClassesView(APIView):
    def get(self, request):
        config = PricingConfig.from_settings()
        vehicles = [
            {
                "vehicle_type": name,
                "base": float(rates.base),
                "per_km": float(rates.per_km),
                "per_minute": float(rates.per_minute),
                "minimum": float(rates.minimum),
            }
            for name, rates in config.vehicle_rates.items()
        ]
        return Response({"currency": config.currency, "vehicles": vehicles})
