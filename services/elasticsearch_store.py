"""
Elasticsearch-backed coordinate store.

Each submitted coordinate is indexed as its own document in the
coordinates index. Listing a device is a term query on ``device_id``
sorted by ``timestamp`` descending.

The elasticsearch client is synchronous; every call is run in the default
executor so the event loop is never blocked on store I/O.
"""

import asyncio
import functools
import logging
import uuid
from typing import Any, Callable, Dict, Optional

from elasticsearch import ConnectionError as ESConnectionError
from elasticsearch import ConnectionTimeout, Elasticsearch

from config.settings import Settings
from devices.models import CoordinateRecord
from errors.exceptions import database_error
from services.coordinate_store import CoordinateStore

logger = logging.getLogger(__name__)

# Failures that mean the cluster itself is unreachable
UNREACHABLE_ERRORS = (ESConnectionError, ConnectionTimeout, ConnectionError, TimeoutError)


def coordinates_mapping() -> Dict[str, Any]:
    """Mapping for the coordinates index."""
    return {
        "properties": {
            "device_id": {"type": "keyword"},
            "latitude": {"type": "float"},
            "longitude": {"type": "float"},
            "location": {"type": "geo_point"},
            "timestamp": {"type": "date"},
        }
    }


class ElasticsearchCoordinateStore(CoordinateStore):
    """
    Coordinate store on an Elasticsearch index.

    Attributes:
        endpoint: Elasticsearch endpoint URL
        index: Name of the coordinates index
        client: Elasticsearch client (created by connect())
    """

    def __init__(
        self,
        endpoint: str,
        index: str = "coordinates",
        api_key: Optional[str] = None,
        request_timeout: float = 5.0,
        client: Optional[Elasticsearch] = None
    ):
        """
        Args:
            endpoint: Elasticsearch endpoint URL
            index: Name of the coordinates index
            api_key: Optional API key for the cluster
            request_timeout: Per-request timeout in seconds
            client: Pre-built client, mainly for tests
        """
        self.endpoint = endpoint
        self.index = index
        self.api_key = api_key
        self.request_timeout = request_timeout
        self.client = client
        self._ready = False
        self._connected = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ElasticsearchCoordinateStore":
        return cls(
            endpoint=settings.elastic_endpoint,
            index=settings.coordinates_index,
            api_key=settings.elastic_api_key,
            request_timeout=settings.store_request_timeout_seconds,
        )

    async def _run(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    def _build_client(self) -> Elasticsearch:
        client_kwargs: Dict[str, Any] = {"request_timeout": self.request_timeout}
        if self.api_key:
            client_kwargs["api_key"] = self.api_key
        return Elasticsearch(self.endpoint, **client_kwargs)

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Ping the cluster and create the coordinates index if missing."""
        if self.client is None:
            self.client = self._build_client()

        if not await self._run(self.client.ping):
            raise ConnectionError(f"Failed to ping Elasticsearch at {self.endpoint}")

        await self._run(self.setup_index)
        self._ready = True
        self._connected = True
        logger.info("Connected to Elasticsearch successfully")

    def setup_index(self) -> None:
        """Create the coordinates index with its mapping if it does not exist."""
        if self.client.indices.exists(index=self.index):
            logger.info(f"Index already exists: {self.index}")
            return
        self.client.indices.create(index=self.index, mappings=coordinates_mapping())
        logger.info(f"Created index: {self.index}")

    async def close(self) -> None:
        self._ready = False
        self._connected = False
        if self.client is None:
            return
        client, self.client = self.client, None
        await self._run(client.close)

    def _handle_elasticsearch_error(self, operation: str, error: Exception) -> None:
        """
        Log a failed store operation and raise DATABASE_ERROR.

        Raises:
            AppException: With DATABASE_ERROR error code
        """
        logger.error(
            f"Elasticsearch {operation} failed: {error}",
            extra={"extra_data": {"operation": operation, "index": self.index}}
        )
        if isinstance(error, UNREACHABLE_ERRORS):
            self._connected = False
        raise database_error(
            message=f"Database operation failed: {operation}",
            details={"operation": operation, "error": str(error)}
        ) from error

    async def save(self, record: CoordinateRecord) -> CoordinateRecord:
        doc_id = record.id or uuid.uuid4().hex
        try:
            await self._run(
                self.client.index,
                index=self.index,
                id=doc_id,
                document=record.to_document(),
                refresh=True,
            )
        except Exception as e:
            self._handle_elasticsearch_error("save", e)
        self._connected = self._ready

        logger.debug(f"Stored coordinate {doc_id} for device {record.device_id}")
        return record.model_copy(update={"id": doc_id})

    async def find_by_device(self, device_id: str, limit: int) -> list[CoordinateRecord]:
        try:
            response = await self._run(
                self.client.search,
                index=self.index,
                query={"term": {"device_id": device_id}},
                sort=[{"timestamp": {"order": "desc"}}],
                size=limit,
            )
        except Exception as e:
            self._handle_elasticsearch_error("find_by_device", e)
        self._connected = self._ready

        return [
            CoordinateRecord.from_document(hit["_id"], hit["_source"])
            for hit in response["hits"]["hits"]
        ]

    async def health_check(self) -> bool:
        """Ping the cluster; the answer also updates is_connected after connect()."""
        if self.client is None:
            return False
        try:
            healthy = bool(await self._run(self.client.ping))
        except Exception as e:
            logger.warning(f"Elasticsearch ping failed: {e}")
            healthy = False
        self._connected = self._ready and healthy
        return healthy
