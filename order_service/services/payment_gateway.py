# order_service/services/payment_gateway.py
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

import requests
from requests import RequestException

from order_service.domain.pricing import whole_amount
from order_service.domain.references import bank_name, transfer_content
from order_service.utils.logging import get_logger
from order_service.utils.retry import gateway_retrying
from order_service.utils.settings import Settings

logger = get_logger(__name__)

SUCCESS_CODE = "00"


class QRProviderError(Exception):
    """The provider answered, but with a non-success code."""

    def __init__(self, code: str | None, desc: str | None):
        super().__init__(desc or f"QR provider returned code {code}")
        self.code = code
        self.desc = desc


@dataclass(frozen=True)
class QRCode:
    qr_code: str | None
    qr_data_url: str | None


@dataclass(frozen=True)
class QRResult:
    success: bool
    transfer_content: str
    amount: int
    qr_code: str | None = None
    qr_data_url: str | None = None
    error: str | None = None
    attempts: int = 0


class QRProvider(ABC):
    """Single call to the QR issuing API, no retries."""

    @abstractmethod
    def generate(self, payload: dict) -> QRCode:
        raise NotImplementedError

    def close(self):
        pass


class VietQRProvider(QRProvider):
    def __init__(
        self,
        api_url: str,
        client_id: str,
        api_key: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.api_url = api_url
        self.client_id = client_id
        self.api_key = api_key
        self.timeout = timeout
        self.http = session or requests.Session()

    def generate(self, payload: dict) -> QRCode:
        resp = self.http.post(
            self.api_url,
            json=payload,
            headers={
                "x-client-id": self.client_id,
                "x-api-key": self.api_key,
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        body = resp.json()

        if body.get("code") != SUCCESS_CODE:
            raise QRProviderError(body.get("code"), body.get("desc"))

        data = body.get("data") or {}
        return QRCode(qr_code=data.get("qrCode"), qr_data_url=data.get("qrDataURL"))

    def close(self):
        self.http.close()


class PaymentGateway:
    """
    Issues bank-transfer QR codes for orders.

    Transport errors and provider error codes are both retried, with
    exponential backoff between attempts. After the last attempt a failed
    QRResult carrying the last error is returned; nothing is persisted here.
    """

    def __init__(self, provider: QRProvider, settings: Settings, sleep: Callable[[float], None] = time.sleep):
        self.provider = provider
        self.settings = settings
        self._sleep = sleep

    def build_request(self, order_id: int, amount: Decimal) -> dict:
        return {
            "accountNo": self.settings.bank_account_no,
            "accountName": self.settings.bank_account_name,
            "acqId": self.settings.bank_acq_id,
            "amount": whole_amount(amount),
            "addInfo": transfer_content(order_id),
            "template": self.settings.vietqr_template,
        }

    def bank_info(self) -> dict:
        return {
            "account_no": self.settings.bank_account_no,
            "account_name": self.settings.bank_account_name,
            "bank_name": bank_name(self.settings.bank_acq_id),
        }

    def generate_qr(self, order_id: int, amount: Decimal) -> QRResult:
        payload = self.build_request(order_id, amount)
        attempts = 0

        def attempt() -> QRCode:
            nonlocal attempts
            attempts += 1
            logger.info(f"QR generation for order {order_id}, attempt {attempts}/{self.settings.gateway_max_attempts}")
            return self.provider.generate(payload)

        retrying = gateway_retrying(
            max_attempts=self.settings.gateway_max_attempts,
            backoff_seconds=self.settings.gateway_backoff_seconds,
            retry_on=(RequestException, QRProviderError),
            sleep=self._sleep,
        )
        try:
            qr = retrying(attempt)
        except (RequestException, QRProviderError) as e:
            logger.error(f"QR generation for order {order_id} failed after {attempts} attempts: {e}")
            return QRResult(
                success=False,
                transfer_content=payload["addInfo"],
                amount=payload["amount"],
                error=str(e),
                attempts=attempts,
            )

        logger.info(f"QR generated for order {order_id} ({payload['addInfo']})")
        return QRResult(
            success=True,
            transfer_content=payload["addInfo"],
            amount=payload["amount"],
            qr_code=qr.qr_code,
            qr_data_url=qr.qr_data_url,
            attempts=attempts,
        )
