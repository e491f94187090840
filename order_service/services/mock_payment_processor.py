# order_service/services/mock_payment_processor.py
import random
import time
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from order_service.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProcessorResult:
    success: bool
    transaction_id: str | None = None
    error: str | None = None


class MockPaymentProcessor:
    """Synchronous stand-in for card/paypal payments."""

    def __init__(
        self,
        success_rate: float = 0.9,
        delay_seconds: float = 0.0,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.success_rate = success_rate
        self.delay_seconds = delay_seconds
        self.rng = rng or random.Random()
        self._sleep = sleep

    def process(self, order_id: int, amount: Decimal, method: str) -> ProcessorResult:
        logger.info(f"Processing {method} payment of {amount} for order {order_id}")
        if self.delay_seconds:
            self._sleep(self.delay_seconds)

        if self.rng.random() < self.success_rate:
            return ProcessorResult(success=True, transaction_id=f"TXN-{uuid.uuid4().hex[:12].upper()}")
        return ProcessorResult(success=False, error="Payment declined by processor")
