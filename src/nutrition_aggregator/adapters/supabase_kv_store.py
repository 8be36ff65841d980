"""Supabase-backed key-value store."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from nutrition_aggregator.services.storage import KVStore

KV_TABLE = "nutrition_kv"
# PostgREST returns at most 1000 rows per request by default.
KEYS_PAGE_SIZE = 1000


@dataclass
class SupabaseKVStore(KVStore):
    """Supabase implementation of the key-value store.

    Rows live in ``nutrition_kv`` with a unique ``key`` column, a text
    ``value`` and an ``updated_at`` timestamp.
    """

    client: Client
    table: str = KV_TABLE
    page_size: int = KEYS_PAGE_SIZE

    def get(self, key: str) -> str | None:
        """Return the stored value for a key."""
        response = (
            self.client.table(self.table)
            .select("value")
            .eq("key", key)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return response.data[0].get("value")

    def set(self, key: str, value: str) -> None:
        """Insert or replace the value for a key."""
        self.client.table(self.table).upsert(
            {
                "key": key,
                "value": value,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            },
            on_conflict="key",
        ).execute()

    def delete(self, key: str) -> None:
        """Delete a key."""
        self.client.table(self.table).delete().eq("key", key).execute()

    def keys(self, prefix: str = "") -> list[str]:
        """Return keys starting with the prefix, paging past the server row cap."""
        keys: list[str] = []
        start = 0
        while True:
            query = self.client.table(self.table).select("key")
            if prefix:
                query = query.like("key", f"{prefix}%")
            response = (
                query.order("key").range(start, start + self.page_size - 1).execute()
            )
            rows = response.data or []
            keys.extend(row["key"] for row in rows if row.get("key"))
            if len(rows) < self.page_size:
                return keys
            start += self.page_size
