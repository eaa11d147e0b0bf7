from django.urls import path
from .views import DistanceView, PriceCompareView, PriceEstimateView, VehicleClassesView

app_name = 'fares'

urlpatterns = [
    path('api/price/', PriceEstimateView.as_view(), name='price_estimate'),
    path('api/price/compare/', PriceCompareView.as_view(), name='price_compare'),
    path('api/distance/', DistanceView.as_view(), name='distance'),
    path('api/vehicles/', VehicleClassesView.as_view(), name='vehicle_classes'),
]
