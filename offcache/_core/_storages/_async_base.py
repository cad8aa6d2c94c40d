import abc
import typing as tp
from abc import ABC

from offcache._core.models import Entry, Request, Response


class AsyncBaseStorage(ABC):
    """
    A set of named partitions, each mapping request keys to stored responses.

    Writing a key that already exists replaces the stored entry.
    """

    @abc.abstractmethod
    async def open(self, partition: str) -> None:
        """
        Create the partition if it does not exist yet.

        Args:
            partition: Name of the partition to open.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    async def partitions(self) -> tp.List[str]:
        """
        Return the names of every partition currently present, in creation order.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    async def match(self, partition: str, request: Request) -> tp.Optional[Entry]:
        """
        Look up the entry stored for a request.

        Args:
            partition: Name of the partition to search.
            request: The request whose cache key is looked up.

        Returns:
            The stored entry, or None when the partition or the key is missing.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    async def put(self, partition: str, request: Request, response: Response) -> Entry:
        """
        Store a response under the request's cache key, opening the partition if needed.

        The response body is consumed; the returned entry carries a replayable copy.

        Args:
            partition: Name of the partition to write into.
            request: The request the response answers.
            response: The response to store.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    async def delete(self, partition: str) -> bool:
        """
        Delete a partition with all its entries.

        Returns:
            True if the partition existed.
        """
        raise NotImplementedError()

    async def close(self) -> None:
        return None
