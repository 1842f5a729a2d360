"""
Storage services for the device tracking backend.

CoordinateStore is the persistence interface used by request handlers;
ElasticsearchCoordinateStore is the production implementation.
"""

from services.coordinate_store import CoordinateStore
from services.elasticsearch_store import ElasticsearchCoordinateStore, coordinates_mapping

__all__ = ["CoordinateStore", "ElasticsearchCoordinateStore", "coordinates_mapping"]
