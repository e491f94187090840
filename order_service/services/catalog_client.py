# order_service/services/catalog_client.py
import requests
from requests import RequestException

from order_service.domain.errors import UpstreamUnavailable
from order_service.domain.pricing import parse_money
from order_service.utils.logging import get_logger
from order_service.utils.retry import http_retry

logger = get_logger(__name__)


class CatalogClient:
    """Read-only client of the book (catalog) service."""

    def __init__(self, base_url: str, timeout: float = 5.0, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()

    @http_retry()
    def _fetch(self, book_id: int) -> dict | None:
        url = f"{self.base_url}/books/{book_id}"
        logger.info(f"CatalogClient GET {url}")

        resp = self.http.get(url, timeout=self.timeout)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        body = resp.json()
        return body.get("data", body) if isinstance(body, dict) else None

    def get_book(self, book_id: int) -> dict | None:
        """
        Returns {id, title, author, price, stock_quantity, cover_image_url}
        or None when the book does not exist or has no usable price.
        Raises UpstreamUnavailable when the catalog cannot be reached.
        """
        try:
            data = self._fetch(book_id)
        except RequestException as e:
            logger.warning(f"Catalog lookup for book {book_id} failed: {e}")
            raise UpstreamUnavailable("Book service unavailable", code="CATALOG_UNAVAILABLE") from e

        if not data:
            return None
        price = parse_money(data.get("price"))
        if price is None:
            logger.warning(f"Book {book_id} has no usable price ({data.get('price')!r}), treating it as missing")
            return None
        return {
            "id": data.get("book_id", data.get("id", book_id)),
            "title": data.get("title"),
            "author": data.get("author") or data.get("author_name"),
            "price": price,
            "stock_quantity": int(data.get("stock_quantity") or 0),
            "cover_image_url": data.get("cover_image_url"),
        }

    def close(self):
        self.http.close()
