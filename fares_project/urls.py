from django.urls import path, include

urlpatterns = [
    path('fares/', include('fares.urls')),
]
