# order_service/services/cart_service.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict

from order_service.domain.errors import NotFound, UpstreamUnavailable, ValidationFailed
from order_service.domain.pricing import subtotal, to_money
from order_service.repos.cart_repo import CartRepo
from order_service.services.enrichment import Enricher, LookupStatus
from order_service.utils.logging import get_logger

logger = get_logger(__name__)

PRICE_DRIFT_TOLERANCE = Decimal("0.10")


class CartService:
    """
    Per-user cart kept in Redis.
    commands (add, update, remove, clear) rewrite the whole document and refresh the TTL,
    query (get) re-reads price and stock from the catalog.
    Concurrent writes of the same user are last-writer-wins.
    """

    def __init__(self, repo: CartRepo, books: Enricher):
        self.repo = repo
        self.books = books

    #query
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self._load(user_id)
        if cart is None:
            return self._empty(user_id)

        kept = []
        for item in cart["items"]:
            result = self.books.lookup(item["book_id"])
            if result.status is LookupStatus.UNAVAILABLE:
                #catalog down: keep the stored snapshot rather than lose the item
                kept.append(item)
                continue
            if not result.found or result.data["stock_quantity"] <= 0:
                logger.info(f"Dropping book {item['book_id']} from cart of user {user_id} (missing or out of stock)")
                continue
            self._refresh_item(item, result.data)
            kept.append(item)

        cart["items"] = kept
        self._recompute(cart)
        self._save(user_id, cart)
        return cart

    #commands
    def add_item(self, user_id: int, book_id: int, quantity: int) -> Dict[str, Any]:
        if quantity < 1:
            raise ValidationFailed("Quantity must be at least 1", code="INVALID_QUANTITY")

        book = self._require_book(book_id)
        cart = self._load(user_id) or self._empty(user_id)

        existing = self._find_item(cart, book_id)
        requested = quantity + (existing["quantity"] if existing else 0)
        self._check_stock(book, requested)

        if existing:
            logger.info(f"Book {book_id} already in cart of user {user_id}, quantity {existing['quantity']} -> {requested}")
            existing["quantity"] = requested
            self._refresh_item(existing, book)
        else:
            logger.info(f"Adding book {book_id} x{quantity} to cart of user {user_id}")
            item = {"book_id": book_id, "quantity": quantity}
            self._refresh_item(item, book)
            cart["items"].append(item)

        self._recompute(cart)
        self._save(user_id, cart)
        return cart

    def update_item(self, user_id: int, book_id: int, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            return self.remove_item(user_id, book_id)

        cart = self._load(user_id) or self._empty(user_id)
        item = self._find_item(cart, book_id)
        if item is None:
            raise NotFound(f"Book {book_id} is not in the cart", code="CART_ITEM_NOT_FOUND")

        book = self._require_book(book_id)
        self._check_stock(book, quantity)

        item["quantity"] = quantity
        self._refresh_item(item, book)
        self._recompute(cart)
        self._save(user_id, cart)
        return cart

    def remove_item(self, user_id: int, book_id: int) -> Dict[str, Any]:
        cart = self._load(user_id) or self._empty(user_id)
        cart["items"] = [i for i in cart["items"] if i["book_id"] != book_id]
        self._recompute(cart)
        self._save(user_id, cart)
        return cart

    def clear(self, user_id: int) -> None:
        logger.info(f"Clearing cart of user {user_id}")
        self.repo.delete(user_id)

    def validate_for_checkout(self, user_id: int) -> Dict[str, Any]:
        """
        Reports items whose live price drifted by more than 10% from the
        cart price, or whose stock no longer covers the quantity.
        Read only, checkout does not consult it.
        """
        cart = self._load(user_id) or self._empty(user_id)
        issues = []
        for item in cart["items"]:
            result = self.books.lookup(item["book_id"])
            if result.status is LookupStatus.UNAVAILABLE:
                continue
            if not result.found:
                issues.append({"book_id": item["book_id"], "issue": "unavailable"})
                continue

            book = result.data
            if book["stock_quantity"] < item["quantity"]:
                issues.append(
                    {
                        "book_id": item["book_id"],
                        "issue": "insufficient_stock",
                        "available": book["stock_quantity"],
                        "requested": item["quantity"],
                    }
                )
            cart_price = Decimal(str(item["unit_price"]))
            live_price = Decimal(str(book["price"]))
            if cart_price > 0 and abs(live_price - cart_price) / cart_price > PRICE_DRIFT_TOLERANCE:
                issues.append(
                    {
                        "book_id": item["book_id"],
                        "issue": "price_changed",
                        "cart_price": str(to_money(cart_price)),
                        "current_price": str(to_money(live_price)),
                    }
                )
        return {"valid": not issues, "issues": issues}

    #helpers
    def _require_book(self, book_id: int) -> dict:
        result = self.books.lookup(book_id)
        if result.status is LookupStatus.UNAVAILABLE:
            raise UpstreamUnavailable("Book service unavailable", code="CATALOG_UNAVAILABLE")
        if not result.found:
            raise NotFound(f"Book {book_id} not found", code="BOOK_NOT_FOUND")
        return result.data

    @staticmethod
    def _check_stock(book: dict, requested: int) -> None:
        available = book["stock_quantity"]
        if requested > available:
            raise ValidationFailed(
                f"Insufficient stock. Available: {available}",
                code="INSUFFICIENT_STOCK",
                details={"available": available, "requested": requested},
            )

    @staticmethod
    def _find_item(cart: dict, book_id: int) -> dict | None:
        return next((i for i in cart["items"] if i["book_id"] == book_id), None)

    @staticmethod
    def _refresh_item(item: dict, book: dict) -> None:
        item["title"] = book.get("title")
        item["author"] = book.get("author")
        item["unit_price"] = to_money(book["price"])
        item["stock_quantity"] = book["stock_quantity"]
        item["cover_image_url"] = book.get("cover_image_url")

    @staticmethod
    def _recompute(cart: dict) -> None:
        cart["total_items"] = sum(i["quantity"] for i in cart["items"])
        cart["total_amount"] = to_money(subtotal((i["unit_price"], i["quantity"]) for i in cart["items"]))
        cart["updated_at"] = datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _empty(user_id: int) -> dict:
        return {
            "user_id": user_id,
            "items": [],
            "total_items": 0,
            "total_amount": Decimal("0.00"),
            "updated_at": None,
        }

    def _load(self, user_id: int) -> dict | None:
        cart = self.repo.get(user_id)
        if cart is None:
            return None
        for item in cart.get("items", []):
            item["unit_price"] = Decimal(str(item["unit_price"]))
        cart["total_amount"] = Decimal(str(cart.get("total_amount", "0")))
        cart["user_id"] = user_id
        return cart

    def _save(self, user_id: int, cart: dict) -> None:
        self.repo.save(user_id, cart)
