"""Persistence gateway: the four verbs the workspace needs from storage."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Protocol, Union

import httpx

from libs.core.models import Collection, Snapshot
from libs.core.settings import get_settings

logger = logging.getLogger(__name__)

SnapshotLike = Union[Snapshot, Mapping[str, Any]]


class PersistenceGateway(Protocol):
    """Anything that can load and store the four collections."""

    def fetch_all(self) -> Snapshot:
        ...

    def persist(self, collection: Collection, record: Dict[str, Any]) -> None:
        """Create ``record`` or merge it into the stored record with the same id."""

    def delete(self, collection: Collection, record_id: str) -> None:
        ...

    def replace_all(self, snapshot: SnapshotLike) -> None:
        ...


class NullGateway:
    """Gateway that stores nothing; for sessions without a backend."""

    def fetch_all(self) -> Snapshot:
        return Snapshot()

    def persist(self, collection: Collection, record: Dict[str, Any]) -> None:
        pass

    def delete(self, collection: Collection, record_id: str) -> None:
        pass

    def replace_all(self, snapshot: SnapshotLike) -> None:
        pass


def snapshot_payload(snapshot: SnapshotLike) -> Dict[str, Any]:
    if isinstance(snapshot, Snapshot):
        return snapshot.to_payload()
    return dict(snapshot)


class HttpGateway:
    """Gateway talking to the collections API over HTTP."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self.client = client or httpx.Client(timeout=self.timeout)

    def _url(self, *parts: str) -> str:
        return "/".join([self.base_url, "api", *parts])

    def fetch_all(self) -> Snapshot:
        response = self.client.get(self._url("data"))
        response.raise_for_status()
        return Snapshot.model_validate(response.json())

    def persist(self, collection: Collection, record: Dict[str, Any]) -> None:
        response = self.client.put(self._url(collection.value, record["id"]), json=record)
        if response.status_code == httpx.codes.NOT_FOUND:
            response = self.client.post(self._url(collection.value), json=record)
        response.raise_for_status()

    def delete(self, collection: Collection, record_id: str) -> None:
        response = self.client.delete(self._url(collection.value, record_id))
        if response.status_code == httpx.codes.NOT_FOUND:
            logger.debug(
                "Record already absent on server",
                extra={"collection": collection.value, "record_id": record_id},
            )
            return
        response.raise_for_status()

    def replace_all(self, snapshot: SnapshotLike) -> None:
        response = self.client.post(self._url("import"), json=snapshot_payload(snapshot))
        response.raise_for_status()

    def close(self) -> None:
        self.client.close()


__all__ = ["PersistenceGateway", "NullGateway", "HttpGateway", "snapshot_payload"]
