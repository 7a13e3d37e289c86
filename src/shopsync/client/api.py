"""HTTP client for the shopsync server API.

This module provides:
- HTTPClient: HTTP client for communicating with the server
- Repair, warehouse and transaction collection fetch and mutation
- Lock acquire/release/query for repair tickets
- Error hierarchy mapping transport and status failures

Collection calls return raw record dictionaries so that the reconcilers
can apply per-record defaulting instead of failing a whole batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from shopsync.core.config import ServerConfig

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(APIError):
    """The server could not be reached (timeout, connection refused)."""


class ServerError(APIError):
    """The server answered with a failure status."""


class NotFoundError(ServerError):
    """Resource not found."""


class ConflictError(ServerError):
    """The lock on a record is held by another device."""

    def __init__(
        self,
        message: str,
        holder_device: str | None = None,
        acquired_at: datetime | None = None,
    ) -> None:
        super().__init__(message, 409)
        self.holder_device = holder_device
        self.acquired_at = acquired_at


def _parse_time(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace(" ", "T"))
    except ValueError:
        return None


@dataclass
class LockState:
    """Lock information for a repair, as reported by the server."""

    locked: bool
    holder_device: str | None = None
    acquired_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LockState:
        """Create from API response dictionary."""
        return cls(
            locked=bool(data.get("locked", False)),
            holder_device=data.get("device"),
            acquired_at=_parse_time(data.get("time")),
        )


@dataclass
class Pagination:
    """Pagination block of a paged collection response."""

    page: int = 1
    limit: int = 0
    total: int = 0
    total_pages: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Pagination:
        """Create from API response dictionary."""
        return cls(
            page=int(data.get("page", 1)),
            limit=int(data.get("limit", 0)),
            total=int(data.get("total", 0)),
            total_pages=int(data.get("totalPages", 1)),
        )


@dataclass
class RepairsPage:
    """Result of a list_repairs call."""

    records: list[Any]
    pagination: Pagination = field(default_factory=Pagination)

    @property
    def has_more(self) -> bool:
        return self.pagination.page < self.pagination.total_pages


class HTTPClient:
    """HTTP client for the shopsync server API."""

    def __init__(
        self,
        config: ServerConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            config: Server configuration (URL, device name, timeouts).
            transport: Optional httpx transport, used by tests to route
                requests to an in-process server.
        """
        self._config = config
        self._client = httpx.Client(
            base_url=config.server_url,
            timeout=httpx.Timeout(
                config.read_timeout,
                connect=config.connect_timeout,
                read=config.read_timeout,
                write=config.write_timeout,
            ),
            transport=transport,
        )

    @property
    def config(self) -> ServerConfig:
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> HTTPClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping transport failures to NetworkError."""
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e
        return self._handle_response(response)

    @staticmethod
    def _body(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code == 404:
            raise NotFoundError("Resource not found", 404)
        if response.status_code == 409:
            body = self._body(response)
            raise ConflictError(
                body.get("error", "Conflict"),
                holder_device=body.get("device"),
                acquired_at=_parse_time(body.get("time")),
            )
        if response.status_code >= 400:
            body = self._body(response)
            detail = body.get("error") or body.get("detail") or "Unknown error"
            raise ServerError(str(detail), response.status_code)
        return response

    def _data(self, response: httpx.Response) -> Any:
        body = self._body(response)
        if "data" not in body:
            raise ServerError("Response has no 'data' field", response.status_code)
        return body["data"]

    # === Health check ===

    def health_check(self) -> bool:
        """Check if the server is healthy.

        Returns:
            True if server is healthy.
        """
        try:
            response = self._client.get("api/health")
            return response.status_code == 200
        except httpx.RequestError:
            return False

    # === Repair operations ===

    def list_repairs(
        self,
        page: int = 1,
        limit: int = 50,
        search: str | None = None,
        status: int | str | None = None,
        executor: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> RepairsPage:
        """List one page of repairs.

        Args:
            page: 1-based page number.
            limit: Page size.
            search: Free-text filter (client name, phone, device, receipt).
            status: Status code filter.
            executor: Executor name filter.
            date_from: Start of the date range (ISO date).
            date_to: End of the date range (ISO date).

        Returns:
            RepairsPage with raw records and pagination.
        """
        params: dict[str, str] = {"page": str(page), "limit": str(limit)}
        optional = {
            "search": search,
            "status": status,
            "executor": executor,
            "dateFrom": date_from,
            "dateTo": date_to,
        }
        params.update({k: str(v) for k, v in optional.items() if v is not None})
        response = self._request("GET", "api/repairs", params=params)
        body = self._body(response)
        records = body.get("data")
        if not isinstance(records, list):
            raise ServerError("Repairs response has no data list", response.status_code)
        pagination = body.get("pagination")
        return RepairsPage(
            records=records,
            pagination=(
                Pagination.from_dict(pagination)
                if isinstance(pagination, dict)
                else Pagination(page=page, limit=limit, total=len(records))
            ),
        )

    def get_repair(self, remote_id: int) -> dict[str, Any]:
        """Get a single repair.

        Raises:
            NotFoundError: If the repair does not exist.
        """
        return self._body(self._request("GET", f"api/repairs/{remote_id}"))

    def create_repair(self, payload: dict[str, Any]) -> int:
        """Create (or update, matched by receipt number) a repair.

        Returns:
            Server id of the stored repair.
        """
        body = self._body(self._request("POST", "api/repairs", json=payload))
        remote_id = body.get("id")
        if not isinstance(remote_id, int):
            raise ServerError("Create repair response has no id")
        return remote_id

    def update_repair(self, remote_id: int, payload: dict[str, Any]) -> None:
        """Update an existing repair."""
        self._request("PUT", f"api/repairs/{remote_id}", json=payload)

    def delete_repair(self, remote_id: int) -> None:
        """Delete a repair."""
        self._request("DELETE", f"api/repairs/{remote_id}")

    def next_receipt_id(self) -> int:
        """Ask the server for the next free receipt number."""
        data = self._data(self._request("GET", "api/next-receipt-id"))
        return int(data["nextReceiptId"])

    # === Warehouse operations ===

    def list_warehouse_items(
        self,
        stock_filter: str = "inStock",
        supplier: str | None = None,
        search: str | None = None,
    ) -> list[Any]:
        """List warehouse items.

        Returns:
            Raw item records.
        """
        params = {"stockFilter": stock_filter}
        if supplier:
            params["supplier"] = supplier
        if search:
            params["search"] = search
        data = self._data(self._request("GET", "api/warehouse", params=params))
        if not isinstance(data, list):
            raise ServerError("Warehouse response data is not a list")
        return data

    def update_barcode(self, item_id: int, barcode: str | None) -> None:
        """Set (or clear, with None) the barcode of a warehouse item."""
        if barcode is None:
            self._request("DELETE", f"api/warehouse/{item_id}/barcode")
        else:
            self._request(
                "PUT", f"api/warehouse/{item_id}/barcode", json={"barcode": barcode}
            )

    # === Transaction operations ===

    def list_transactions(
        self,
        start_date: str | None = None,
        end_date: str | None = None,
        category: str | None = None,
        payment_type: str | None = None,
    ) -> list[Any]:
        """List cash register transactions.

        Returns:
            Raw transaction records.
        """
        optional = {
            "startDate": start_date,
            "endDate": end_date,
            "category": category,
            "paymentType": payment_type,
        }
        params = {k: v for k, v in optional.items() if v is not None}
        data = self._data(self._request("GET", "api/transactions", params=params))
        if not isinstance(data, list):
            raise ServerError("Transactions response data is not a list")
        return data

    # === Lock operations ===

    def get_lock(self, repair_id: int) -> LockState:
        """Query the lock on a repair."""
        response = self._request("GET", f"api/locks/{repair_id}")
        return LockState.from_dict(self._body(response))

    def set_lock(self, repair_id: int, device: str) -> None:
        """Acquire the lock on a repair.

        Raises:
            ConflictError: If another device holds the lock.
        """
        self._request("POST", f"api/locks/{repair_id}", json={"device": device})

    def release_lock(self, repair_id: int) -> None:
        """Release the lock on a repair."""
        self._request("DELETE", f"api/locks/{repair_id}")
