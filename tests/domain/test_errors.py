from order_service.domain.errors import (
    Conflict,
    ErrorKind,
    NotFound,
    PaymentDeclined,
    UpstreamUnavailable,
    ValidationFailed,
)


def test_kinds():
    assert ValidationFailed("x").kind is ErrorKind.VALIDATION
    assert NotFound("x").kind is ErrorKind.NOT_FOUND
    assert Conflict("x").kind is ErrorKind.CONFLICT
    assert UpstreamUnavailable("x").kind is ErrorKind.UPSTREAM
    assert PaymentDeclined("x").kind is ErrorKind.PAYMENT_DECLINED


def test_code_defaults_and_override():
    assert ValidationFailed("bad").code == "VALIDATION_ERROR"
    assert ValidationFailed("empty", code="EMPTY_CART").code == "EMPTY_CART"


def test_to_dict_omits_empty_details():
    assert NotFound("gone", code="ORDER_NOT_FOUND").to_dict() == {"code": "ORDER_NOT_FOUND", "message": "gone"}
    body = UpstreamUnavailable("down", code="PAYMENT_SERVICE_ERROR", details={"order_id": 5}).to_dict()
    assert body["details"] == {"order_id": 5}
