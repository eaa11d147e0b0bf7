"""Check which Google Maps key the distance lookup sends, without calling Google.

Usage: python scripts/check_distance_key.py
"""
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'fares_project.settings')
os.environ.setdefault('GOOGLE_MAPS_SERVER_KEY', 'server-key')

import django
django.setup()

import requests

from fares.services.cache import TTLDistanceCache
from fares.services.distance import DistanceService
from fares.services.google_maps import GoogleMapsClient

called = {}


class FakeResponse:
    def raise_for_status(self):
        pass

    def json(self):
        return {
            "destination_addresses": ["Brussels Airport"],
            "origin_addresses": ["Brussel-Centraal"],
            "rows": [{"elements": [{
                "status": "OK",
                "distance": {"text": "12.5 km", "value": 12500},
                "duration": {"text": "18 mins", "value": 1080},
            }]}],
            "status": "OK",
        }


def fake_get(url, params=None, timeout=None):
    called['url'] = url
    called['params'] = params
    called['timeout'] = timeout
    return FakeResponse()


orig_get = requests.get
requests.get = fake_get

try:
    service = DistanceService(client=GoogleMapsClient(), cache=TTLDistanceCache())
    result = service.resolve((50.8457, 4.3574), (50.9014, 4.4844))
    print('result=', result.to_dict())
    print('sent_key=', called.get('params', {}).get('key'))
    print('timeout=', called.get('timeout'))
finally:
    requests.get = orig_get
