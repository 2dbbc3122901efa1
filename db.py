"""
db.py
Hosted table storage helpers (Supabase async client): ordered reads and
row-level insert / update-by-id / delete-by-id.
"""

from __future__ import annotations

import logging

from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from config import Settings
from exceptions import RemoteStoreError

logger = logging.getLogger(__name__)

FAMILIES_TABLE = "families"
TRANSACTIONS_TABLE = "financial_records"


async def create_client(settings: Settings) -> AsyncClient:
    if not settings.is_configured:
        raise RemoteStoreError("SUPABASE_URL and SUPABASE_KEY must be set.")
    logger.info("Connecting to Supabase project at %s", settings.supabase_url)
    return await acreate_client(settings.supabase_url, settings.supabase_key)


class RemoteStore:
    """Row-level access to the hosted tables."""

    def __init__(self, client: AsyncClient):
        self._client = client

    async def fetch_all(self, table: str, order: str, desc: bool = False) -> list[dict]:
        try:
            res = await self._client.table(table).select("*").order(order, desc=desc).execute()
        except APIError as exc:
            raise RemoteStoreError(exc.message or str(exc)) from exc
        return list(res.data or [])

    async def insert(self, table: str, row: dict) -> None:
        try:
            await self._client.table(table).insert(row).execute()
        except APIError as exc:
            raise RemoteStoreError(exc.message or str(exc)) from exc

    async def update(self, table: str, row_id: str, values: dict) -> None:
        try:
            await self._client.table(table).update(values).eq("id", row_id).execute()
        except APIError as exc:
            raise RemoteStoreError(exc.message or str(exc)) from exc

    async def delete(self, table: str, row_id: str) -> None:
        try:
            await self._client.table(table).delete().eq("id", row_id).execute()
        except APIError as exc:
            raise RemoteStoreError(exc.message or str(exc)) from exc
