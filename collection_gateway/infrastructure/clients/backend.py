"""Backend REST API client for members, installment records and product sales"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from collection_gateway.config import settings
from collection_gateway.domain.exceptions import BackendAPIError, InvalidTransactionDataError
from collection_gateway.domain.models import Member, ProductEntry
from collection_gateway.domain.records import Record, decode_transactions
from collection_gateway.domain.rows import decode_product_entries

logger = logging.getLogger(__name__)


@dataclass
class MemberBundle:
    """Everything one member's pass needs, fetched before the pass starts"""

    member: Member
    transactions: List[Record]
    products: List[ProductEntry] = field(default_factory=list)


@dataclass
class BatchResult:
    bundles: List[MemberBundle]
    failed_member_ids: List[str]


def member_from_payload(raw: Dict[str, Any]) -> Member:
    total_savings = raw.get("totalSavings")
    return Member(
        id=str(raw.get("_id") or raw["id"]),
        name=str(raw.get("name") or ""),
        total_savings=float(total_savings) if total_savings is not None else None,
        member_code=raw.get("memberCode"),
    )


class BackendClient:
    """Client for the field-operations backend API"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.backend_api_base).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self.token = token
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=headers,
            transport=self.transport,
        )

    async def _get(self, client: httpx.AsyncClient, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET a backend endpoint and unwrap its `data` envelope.

        Raises:
            BackendAPIError: On timeout, HTTP errors, or invalid response
        """
        try:
            response = await client.get(path, params=params)
            response.raise_for_status()
            payload = response.json()
            return payload.get("data", payload) if isinstance(payload, dict) else payload
        except httpx.TimeoutException as e:
            raise BackendAPIError(f"Backend API timeout after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise BackendAPIError(f"Backend API error: {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise BackendAPIError(f"Backend API unreachable: {e}") from e
        except ValueError as e:
            raise BackendAPIError(f"Invalid JSON from backend: {e}") from e

    async def get_member(self, member_id: str) -> Member:
        async with self._client() as client:
            return await self._fetch_member(client, member_id)

    async def get_collector_members(self, collector_id: str) -> List[Member]:
        async with self._client() as client:
            data = await self._get(client, "/members", params={"collector": collector_id})
            try:
                return [member_from_payload(item) for item in data or []]
            except (KeyError, TypeError, ValueError) as e:
                raise BackendAPIError(f"Invalid member data from backend: {e}") from e

    async def get_transactions(self, member_id: str) -> List[Record]:
        async with self._client() as client:
            return await self._fetch_transactions(client, member_id)

    async def get_products(self, member_id: str) -> List[ProductEntry]:
        async with self._client() as client:
            return await self._fetch_products(client, member_id)

    async def get_member_bundle(self, member_id: str) -> MemberBundle:
        async with self._client() as client:
            return await self._fetch_bundle(client, member_id)

    async def get_member_bundles(self, member_ids: Sequence[str], batch_size: int | None = None) -> BatchResult:
        """
        Fetch bundles for many members, `batch_size` members at a time.

        A member whose fetch fails is reported in `failed_member_ids`; the
        others are still returned.
        """
        batch_size = batch_size or settings.fetch_batch_size
        bundles: List[MemberBundle] = []
        failed: List[str] = []

        async with self._client() as client:
            for start in range(0, len(member_ids), batch_size):
                batch = member_ids[start:start + batch_size]
                results = await asyncio.gather(
                    *(self._fetch_bundle(client, member_id) for member_id in batch),
                    return_exceptions=True,
                )
                for member_id, result in zip(batch, results):
                    if isinstance(result, BackendAPIError):
                        logger.warning("Failed to fetch member %s: %s", member_id, result)
                        failed.append(member_id)
                    elif isinstance(result, BaseException):
                        raise result
                    else:
                        bundles.append(result)

        return BatchResult(bundles=bundles, failed_member_ids=failed)

    async def _fetch_member(self, client: httpx.AsyncClient, member_id: str) -> Member:
        data = await self._get(client, f"/members/{member_id}")
        try:
            return member_from_payload(data)
        except (KeyError, TypeError, ValueError) as e:
            raise BackendAPIError(f"Invalid member data from backend: {e}") from e

    async def _fetch_transactions(self, client: httpx.AsyncClient, member_id: str) -> List[Record]:
        data = await self._get(client, f"/installments/member/{member_id}")
        try:
            return decode_transactions(data or [])
        except (InvalidTransactionDataError, TypeError) as e:
            raise BackendAPIError(f"Invalid transaction data from backend: {e}") from e

    async def _fetch_products(self, client: httpx.AsyncClient, member_id: str) -> List[ProductEntry]:
        data = await self._get(client, f"/installments/active-sales/{member_id}")
        try:
            return decode_product_entries(data or [])
        except (AttributeError, TypeError, ValueError) as e:
            raise BackendAPIError(f"Invalid product data from backend: {e}") from e

    async def _fetch_bundle(self, client: httpx.AsyncClient, member_id: str) -> MemberBundle:
        member, transactions, products = await asyncio.gather(
            self._fetch_member(client, member_id),
            self._fetch_transactions(client, member_id),
            self._fetch_products(client, member_id),
        )
        return MemberBundle(member=member, transactions=transactions, products=products)
