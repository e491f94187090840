# order_service/services/enrichment.py
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable

from order_service.domain.errors import UpstreamUnavailable
from order_service.domain.pricing import parse_money
from order_service.services.catalog_client import CatalogClient
from order_service.services.identity_client import IdentityClient
from order_service.utils.logging import get_logger

logger = get_logger(__name__)


class LookupStatus(str, Enum):
    FOUND = "found"
    MISSING = "missing"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class Lookup:
    status: LookupStatus
    data: dict | None = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND


class Enricher:
    """
    One lookup against a read-only collaborator (books, customers).
    `lookup` reports what happened; `enrich` never fails and falls
    back to a placeholder record. Records rejected by `usable` count as missing.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[int], dict | None],
        placeholder: Callable[[int], dict],
        usable: Callable[[dict], bool] | None = None,
    ):
        self.name = name
        self._fetch = fetch
        self._placeholder = placeholder
        self._usable = usable

    def lookup(self, key: int) -> Lookup:
        try:
            data = self._fetch(key)
        except UpstreamUnavailable as e:
            logger.warning(f"{self.name} {key} could not be resolved: {e.message}")
            return Lookup(LookupStatus.UNAVAILABLE)
        if data is None:
            return Lookup(LookupStatus.MISSING)
        if self._usable is not None and not self._usable(data):
            logger.warning(f"{self.name} {key} returned an unusable record, treating it as missing")
            return Lookup(LookupStatus.MISSING)
        return Lookup(LookupStatus.FOUND, data)

    def enrich(self, key: int) -> dict:
        result = self.lookup(key)
        if result.found:
            return result.data
        return self._placeholder(key)

    def enrich_many(self, keys: Iterable[int]) -> dict[int, dict]:
        resolved: dict[int, dict] = {}
        for key in keys:
            if key not in resolved:
                resolved[key] = self.enrich(key)
        return resolved


def _unknown_book(book_id: int) -> dict:
    return {
        "id": book_id,
        "title": "Unknown Book",
        "author": None,
        "price": None,
        "stock_quantity": 0,
        "cover_image_url": None,
    }


def _priced(book: dict) -> bool:
    return parse_money(book.get("price")) is not None


def _unknown_customer(user_id: int) -> dict:
    return {"full_name": "Unknown Customer", "email": "unknown@example.com", "phone": None}


def book_enricher(catalog: CatalogClient) -> Enricher:
    return Enricher("book", catalog.get_book, _unknown_book, usable=_priced)


def customer_enricher(identity: IdentityClient) -> Enricher:
    return Enricher("customer", identity.get_user, _unknown_customer)
