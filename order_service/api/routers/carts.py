# order_service/api/routers/carts.py
from fastapi import APIRouter, Depends

from order_service.api.deps import CurrentUser, get_current_user, get_resources
from order_service.domain.schemas import CartItemIn, CartItemUpdate, CartOut, CartValidationOut
from order_service.repos.cart_repo import CartRepo
from order_service.resources import Resources
from order_service.services.cart_service import CartService
from order_service.services.enrichment import book_enricher

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(resources: Resources = Depends(get_resources)) -> CartService:
    return CartService(
        repo=CartRepo(resources.redis, resources.settings.cart_ttl_seconds),
        books=book_enricher(resources.catalog),
    )


@router.get("", response_model=CartOut)
def get_cart(user: CurrentUser = Depends(get_current_user), svc: CartService = Depends(get_service)):
    return svc.get_cart(user.id)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: CartItemIn,
    user: CurrentUser = Depends(get_current_user),
    svc: CartService = Depends(get_service),
):
    return svc.add_item(user.id, payload.book_id, payload.quantity)


@router.put("/items/{book_id}", response_model=CartOut)
def update_item(
    book_id: int,
    payload: CartItemUpdate,
    user: CurrentUser = Depends(get_current_user),
    svc: CartService = Depends(get_service),
):
    return svc.update_item(user.id, book_id, payload.quantity)


@router.delete("/items/{book_id}", response_model=CartOut)
def remove_item(
    book_id: int,
    user: CurrentUser = Depends(get_current_user),
    svc: CartService = Depends(get_service),
):
    return svc.remove_item(user.id, book_id)


@router.delete("", status_code=204)
def clear_cart(user: CurrentUser = Depends(get_current_user), svc: CartService = Depends(get_service)):
    svc.clear(user.id)


@router.get("/validate", response_model=CartValidationOut)
def validate_cart(user: CurrentUser = Depends(get_current_user), svc: CartService = Depends(get_service)):
    return svc.validate_for_checkout(user.id)
