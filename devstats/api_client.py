"""Async client for the remote student data API."""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from devstats.cache import TTLCache
from devstats.models import (
    LastUpdateEntry,
    Notification,
    RemoveNotificationResponse,
    StudentRecord,
    UpdateResponse,
)
from devstats.parsers import parse_date


logger = logging.getLogger(__name__)

AVAILABLE_TABLES_KEY = "available_tables"
LAST_UPDATE_KEY = "last_update_entries"
LAST_UPDATE_TTL_SECONDS = 5 * 60

ModelT = TypeVar("ModelT", bound=BaseModel)


def student_data_key(table_name: str) -> str:
    return f"student_data_{table_name}"


class DataAPIError(RuntimeError):
    """Raised when the data API is unreachable or answers with an error status."""

    def __init__(self, endpoint: str, status_code: Optional[int] = None, detail: str = "") -> None:
        self.endpoint = endpoint
        self.status_code = status_code
        message = f"Data API request failed: {endpoint}"
        if status_code is not None:
            message += f" (status {status_code})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class DataAPIClient:
    """
    Thin wrapper over the data API endpoints.

    Rosters and the table list are cached; a cached roster is only trusted
    while the server's ``/lastUpdate`` entry for that table is not newer
    than the cache entry.
    """

    def __init__(
        self,
        *,
        base_url: str,
        cache: Optional[TTLCache] = None,
        timeout_s: float = 15.0,
        last_update_ttl_s: float = LAST_UPDATE_TTL_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self.cache = cache if cache is not None else TTLCache()
        self._last_update_ttl_s = last_update_ttl_s
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout_s), transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        expect: type = object,
    ) -> Any:
        url = f"{self._base_url}{endpoint}"
        try:
            resp = await self._client.request(
                method, url, json=payload, headers={"Content-Type": "application/json"}
            )
        except httpx.HTTPError as e:
            logger.error("API request failed: %s (%s)", endpoint, e)
            raise DataAPIError(endpoint, detail=str(e)) from e
        if resp.status_code >= 400:
            logger.error("API request failed: %s returned %s", endpoint, resp.status_code)
            raise DataAPIError(endpoint, resp.status_code)
        try:
            result = resp.json()
        except ValueError as e:
            logger.error("API request failed: %s returned a non-JSON body", endpoint)
            raise DataAPIError(endpoint, resp.status_code, "invalid JSON body") from e
        if not isinstance(result, expect):
            logger.error("API request failed: %s returned %s, expected %s", endpoint, type(result).__name__, expect.__name__)
            raise DataAPIError(endpoint, resp.status_code, f"unexpected {type(result).__name__} body")
        return result

    @staticmethod
    def _build(endpoint: str, model: Type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error("API request failed: %s returned a malformed %s", endpoint, model.__name__)
            raise DataAPIError(endpoint, detail=f"malformed {model.__name__}") from e

    async def check_health(self) -> Dict[str, Any]:
        return await self._request("GET", "/health", expect=dict)

    async def get_available_tables(self) -> List[str]:
        cached = self.cache.get(AVAILABLE_TABLES_KEY)
        if cached is not None:
            return cached
        result = await self._request("GET", "/available", expect=dict)
        tables = result.get("tables", [])
        if not isinstance(tables, list):
            raise DataAPIError("/available", detail="unexpected tables payload")
        tables = list(tables)
        self.cache.set(AVAILABLE_TABLES_KEY, tables)
        return tables

    async def get_last_updates(self) -> List[LastUpdateEntry]:
        """Always fetched fresh so server-side changes invalidate caches promptly."""
        result = await self._request("GET", "/lastUpdate", expect=list)
        return [self._build("/lastUpdate", LastUpdateEntry, entry) for entry in result]

    async def get_last_updates_cached(self, ttl_s: Optional[float] = None) -> List[LastUpdateEntry]:
        cached = self.cache.get(LAST_UPDATE_KEY)
        if cached is not None:
            return cached
        entries = await self.get_last_updates()
        self.cache.set(LAST_UPDATE_KEY, entries, self._last_update_ttl_s if ttl_s is None else ttl_s)
        return entries

    @staticmethod
    def latest_change(entries: List[LastUpdateEntry], table_name: str) -> Optional[float]:
        """Newest ``changed_at`` (epoch seconds) for *table_name* or its ``_data`` variant."""
        base = table_name.lower()
        if base.endswith("_data"):
            base = base[: -len("_data")]
        timestamps = []
        for entry in entries:
            if entry.table_name.lower() not in (base, f"{base}_data"):
                continue
            changed_at = parse_date(entry.changed_at)
            if changed_at is not None:
                timestamps.append(changed_at.timestamp())
        return max(timestamps) if timestamps else None

    async def _cached_roster_is_fresh(self, table_name: str, use_cached_last_update: bool) -> bool:
        key = student_data_key(table_name)
        try:
            if use_cached_last_update:
                entries = await self.get_last_updates_cached()
            else:
                entries = await self.get_last_updates()
        except DataAPIError:
            logger.warning("Could not validate cached roster for %s, serving cache", table_name)
            return True

        changed_at = self.latest_change(entries, table_name)
        if changed_at is None or changed_at <= 0:
            return True
        if self.cache.is_stale(key, changed_at):
            logger.info("Cached roster for %s is older than server change, evicting", table_name)
            self.cache.remove(key)
            return False
        return True

    async def get_student_data(
        self,
        table_name: str,
        *,
        use_cached_last_update: bool = False,
        skip_cache_validation: bool = False,
        cache_only: bool = False,
    ) -> List[StudentRecord]:
        """
        Fetch one class roster, serving the cache while it is still valid.

        Args:
            table_name: Class table name as listed by ``/available``
            use_cached_last_update: Validate against a cached ``/lastUpdate`` list
            skip_cache_validation: Trust any cached roster without asking the server
            cache_only: Never hit ``/data``; return an empty roster on a cache miss

        Returns:
            The class roster
        """
        key = student_data_key(table_name)
        cached = self.cache.get(key)
        if cached is not None:
            if skip_cache_validation:
                return cached
            if await self._cached_roster_is_fresh(table_name, use_cached_last_update):
                return cached

        if cache_only:
            return []

        result = await self._request("POST", "/data", {"table_name": table_name}, expect=list)
        roster = [self._build("/data", StudentRecord, student) for student in result]
        self.cache.set(key, roster)
        return roster

    async def update_database(self, table_name: str) -> UpdateResponse:
        result = await self._request("POST", "/update", {"table_name": table_name}, expect=dict)
        self.cache.remove(student_data_key(table_name))
        self.cache.remove(AVAILABLE_TABLES_KEY)
        return self._build("/update", UpdateResponse, result)

    async def get_notifications(self) -> List[Notification]:
        result = await self._request("GET", "/showNotif", expect=list)
        return [self._build("/showNotif", Notification, item) for item in result]

    async def remove_notification(self, table_name: str, roll_number: Any) -> RemoveNotificationResponse:
        result = await self._request(
            "POST", "/removeNotif", {"table_name": table_name, "roll_number": roll_number}, expect=dict
        )
        return self._build("/removeNotif", RemoveNotificationResponse, result)
