# order_service/domain/references.py

#acquirer (bank) ids accepted by the QR provider
BANK_NAMES = {
    "970422": "MB Bank",
    "970415": "VietinBank",
    "970436": "Vietcombank",
    "970418": "BIDV",
    "970405": "Agribank",
    "970407": "Techcombank",
    "970416": "ACB",
    "970432": "VPBank",
    "970423": "TPBank",
    "970403": "Sacombank",
}


def transfer_content(order_id: int) -> str:
    """Reconciliation key written into the bank transfer; stable per order."""
    return f"DH{order_id:06d}"


def order_number(order_id: int) -> str:
    return f"ORD-{order_id:06d}"


def invoice_number(order_id: int) -> str:
    return f"INV-{order_number(order_id)}"


def bank_name(acq_id: str) -> str:
    return BANK_NAMES.get(str(acq_id), "Unknown Bank")
