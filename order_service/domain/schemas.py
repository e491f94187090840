# order_service/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from order_service.domain.enums import PaymentMethod


#cart
class CartItemIn(BaseModel):
    """Adding a book to the cart."""

    book_id: int = Field(..., gt=0, description="Book id (> 0)")
    quantity: int = Field(1, ge=1, description="Quantity (>= 1)")


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., description="New quantity; 0 or less removes the item")


class CartItemOut(BaseModel):
    book_id: int
    title: Optional[str] = None
    author: Optional[str] = None
    unit_price: Decimal
    quantity: int
    stock_quantity: int
    cover_image_url: Optional[str] = None


class CartOut(BaseModel):
    user_id: int
    items: List[CartItemOut]
    total_items: int
    total_amount: Decimal
    updated_at: Optional[datetime] = None


class CartIssueOut(BaseModel):
    book_id: int
    issue: str
    available: Optional[int] = None
    requested: Optional[int] = None
    cart_price: Optional[Decimal] = None
    current_price: Optional[Decimal] = None


class CartValidationOut(BaseModel):
    valid: bool
    issues: List[CartIssueOut]


#orders
class CheckoutIn(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    shipping_address: str = Field(..., min_length=1, max_length=1000)


class CancelIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BankInfoOut(BaseModel):
    account_no: str
    account_name: str
    bank_name: str


class QRPaymentOut(BaseModel):
    order_id: int
    order_number: str
    session_id: int
    qr_code: Optional[str] = None
    qr_data_url: Optional[str] = None
    transfer_content: str
    amount: Decimal
    expires_at: datetime
    expires_in_seconds: int
    bank_info: BankInfoOut
    is_regenerated: bool = False


class OrderSummaryOut(BaseModel):
    order_id: int
    order_number: str
    user_id: int
    status: str
    payment_status: str
    payment_method: str
    total_amount: Decimal
    shipping_address: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CheckoutOut(OrderSummaryOut):
    payment: Optional[QRPaymentOut] = None
    transaction_id: Optional[str] = None


class OrderItemOut(BaseModel):
    item_id: int
    book_id: int
    title: Optional[str] = None
    author: Optional[str] = None
    cover_image_url: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class PaymentSessionOut(BaseModel):
    session_id: int
    status: str
    transfer_content: str
    amount: Decimal
    qr_data_url: Optional[str] = None
    expires_at: datetime
    expires_in_seconds: int
    confirmed_by: Optional[int] = None
    confirmed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime


class OrderOut(OrderSummaryOut):
    items: List[OrderItemOut]
    payment_session: Optional[PaymentSessionOut] = None


class OrderPageOut(BaseModel):
    orders: List[OrderOut]
    page: int
    limit: int
    total: int


#admin
class CustomerOut(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class StatusHistoryOut(BaseModel):
    from_status: Optional[str] = None
    to_status: str
    changed_by: Optional[int] = None
    reason: Optional[str] = None
    created_at: datetime


class AdminOrderRowOut(OrderSummaryOut):
    customer: CustomerOut
    item_count: int


class AdminOrderPageOut(BaseModel):
    orders: List[AdminOrderRowOut]
    page: int
    limit: int
    total: int


class PendingPaymentRowOut(OrderSummaryOut):
    customer: CustomerOut
    transfer_content: Optional[str] = None
    expires_at: Optional[datetime] = None
    time_remaining_seconds: int


class PendingPaymentPageOut(BaseModel):
    orders: List[PendingPaymentRowOut]
    page: int
    limit: int
    total: int


class AdminOrderDetailOut(OrderSummaryOut):
    customer: CustomerOut
    items: List[OrderItemOut]
    payment_sessions: List[PaymentSessionOut]
    status_history: List[StatusHistoryOut]


class StatusUpdateIn(BaseModel):
    status: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=500)


class RejectIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class InvoiceSummaryOut(BaseModel):
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    processing_fee: Decimal
    total: Decimal


class InvoiceOut(OrderSummaryOut):
    invoice_number: str
    customer: CustomerOut
    items: List[OrderItemOut]
    summary: InvoiceSummaryOut


#statistics
class OrderStatisticsOut(BaseModel):
    total_orders: int
    completed_orders: int
    pending_orders: int
    cancelled_orders: int
    total_revenue: Decimal
    avg_order_value: Decimal


class UserOrderStatsOut(BaseModel):
    user_id: int
    order_count: int
    total_spent: Decimal
    last_order_at: Optional[datetime] = None


class RevenueWindowsOut(BaseModel):
    daily: Decimal
    weekly: Decimal
    monthly: Decimal


class OrderCountsOut(BaseModel):
    new_count: int
    pending_count: int
    total_today: int


class TopBookOut(BaseModel):
    book_id: int
    title: Optional[str] = None
    quantity_sold: int


class DashboardStatsOut(BaseModel):
    revenue: RevenueWindowsOut
    orders: OrderCountsOut
    top_books: List[TopBookOut]


class RevenuePointOut(BaseModel):
    date: str
    revenue: Decimal
    order_count: int


class RevenueChartOut(BaseModel):
    period: str
    interval_days: int
    group_by: str
    points: List[RevenuePointOut]
