"""
Coordinate store abstraction.

Request handlers depend on this interface rather than on a concrete
database client, so the service can run against Elasticsearch in
production and an in-memory store in tests.
"""

from abc import ABC, abstractmethod

from devices.models import CoordinateRecord


class CoordinateStore(ABC):
    """
    Abstract base class for coordinate record persistence.

    All I/O methods are async. Failures of save() and find_by_device()
    are raised as AppException with the DATABASE_ERROR code.
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish the connection and make sure storage is ready.

        Raises:
            ConnectionError: If the store cannot be reached.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the connection. Calling close() twice is harmless."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Last observed connection state: set by connect(), cleared by close() or a lost connection."""
        pass

    @abstractmethod
    async def save(self, record: CoordinateRecord) -> CoordinateRecord:
        """
        Persist one record.

        Returns:
            The stored record, including its assigned id.
        """
        pass

    @abstractmethod
    async def find_by_device(self, device_id: str, limit: int) -> list[CoordinateRecord]:
        """
        All records submitted by a device, most recent first.

        Args:
            device_id: Device to look up
            limit: Maximum number of records to return
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check connectivity to the store.

        Returns:
            True if the store answers, False otherwise. Never raises.
        """
        pass
