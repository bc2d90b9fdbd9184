# services/payment_settings.py
from urllib.parse import quote, urlencode

from config import MERCHANT_NAME, PAYMENT_CURRENCY, PREVIEW_AMOUNT, QR_SERVICE_URL
from models import PaymentSettings
from logger import get_logger

log = get_logger("payment_settings")


def get_payment_settings(store) -> PaymentSettings:
    return store.load_payment_settings()


def set_payment_settings(store, settings: PaymentSettings) -> PaymentSettings:
    # full replace: both fields are always written
    clean = PaymentSettings(
        payment_identifier=(settings.payment_identifier or "").strip(),
        instructions=settings.instructions or "",
    )
    store.save_payment_settings(clean)
    log.info(f"Payment settings updated: payment_identifier={clean.payment_identifier!r}")
    return clean


def upi_payment_uri(payment_identifier: str, amount) -> str:
    return (
        f"upi://pay?pa={payment_identifier}"
        f"&pn={quote(MERCHANT_NAME)}&am={amount}&cu={PAYMENT_CURRENCY}"
    )


def upi_preview_uri(payment_identifier: str) -> str:
    """Payment URI for the fixed test amount shown next to the settings form."""
    return upi_payment_uri(payment_identifier, PREVIEW_AMOUNT)


def qr_image_url(data: str, size: int = 150) -> str:
    return f"{QR_SERVICE_URL}?{urlencode({'size': f'{size}x{size}', 'data': data})}"
