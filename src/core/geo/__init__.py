# src/core/geo/__init__.py
"""
Геосервис: расстояния между точками.
"""

from src.core.geo.service import GeoService, Location, RoadDistance, haversine_km

__all__ = ["GeoService", "Location", "RoadDistance", "haversine_km"]
