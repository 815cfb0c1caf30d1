"""
Checklist / order lookup client.

Reads the minimum the export needs from the application's REST data proxy:
whether the checklist exists, and the order number used to name the PDF.
Queries use PostgREST filter syntax (`id=eq.<id>`).
"""

from dataclasses import dataclass
from typing import Any

import requests

from protocolpdf.shared.logging import get_logger

logger = get_logger(__name__)


class ChecklistClientError(Exception):
    """Error from the data proxy"""
    def __init__(
        self,
        message: str,
        status_code: int | None = None
    ):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class ChecklistRecord:
    """A checklist plus the order row fetched for it, if that lookup succeeded."""
    id: str
    order_id: str | None = None
    order_number: str | None = None

    @property
    def file_id(self) -> str:
        """Identifier used for the PDF filename: order number, order id, checklist id."""
        return str(self.order_number or self.order_id or self.id)


class ChecklistClient:
    """
    Data proxy client, authenticated as the caller.

    Usage:
        client = ChecklistClient(api_url=settings.data_api_url, token=bearer)
        record = client.fetch_checklist("c1")
    """

    def __init__(
        self,
        api_url: str,
        token: str | None = None,
        timeout: float = 10,
    ):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def _get_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
            headers["apikey"] = self.token
        return headers

    def _select_one(self, table: str, row_id: str, columns: str) -> dict[str, Any] | None:
        url = f"{self.api_url}/{table}"
        try:
            response = requests.get(
                url,
                headers=self._get_headers(),
                params={"id": f"eq.{row_id}", "select": columns, "limit": 1},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Data proxy request failed: {e}")
            raise ChecklistClientError(f"Request failed: {e}") from e

        if response.status_code != 200:
            raise ChecklistClientError(
                f"HTTP {response.status_code}: {response.text}",
                status_code=response.status_code
            )

        try:
            rows = response.json()
        except ValueError as e:
            raise ChecklistClientError(
                f"Invalid JSON from data proxy: {e}",
                status_code=response.status_code
            ) from e

        if isinstance(rows, dict) and "data" in rows:
            rows = rows["data"] or []
        if not isinstance(rows, list):
            raise ChecklistClientError(
                f"Unexpected payload from data proxy: {type(rows).__name__}",
                status_code=response.status_code
            )
        return rows[0] if rows else None

    def fetch_checklist(self, checklist_id: str) -> ChecklistRecord | None:
        """
        Look up a checklist and its order number.

        Returns None when the checklist does not exist. A failing order lookup
        only costs the nicer filename, so it is logged and ignored.
        """
        row = self._select_one("checklists", checklist_id, "id,order_id")
        if row is None:
            return None

        record = ChecklistRecord(id=str(row.get("id") or checklist_id))
        order_id = row.get("order_id")
        if order_id:
            try:
                order = self._select_one("orders", str(order_id), "id,order_number")
            except ChecklistClientError as e:
                logger.warning(f"Order lookup for checklist {checklist_id} failed: {e}")
                order = None
            # Only a fetched order names the file
            if order:
                record.order_id = str(order.get("id") or order_id)
                record.order_number = order.get("order_number")
        return record
