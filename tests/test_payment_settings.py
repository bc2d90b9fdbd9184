from urllib.parse import parse_qs, urlparse

from models import PaymentSettings
from services.payment_settings import (
    get_payment_settings,
    set_payment_settings,
    upi_payment_uri,
    upi_preview_uri,
    qr_image_url,
)


def test_defaults_to_empty_settings(store):
    assert get_payment_settings(store) == PaymentSettings("", "")


def test_set_is_a_full_replace(store):
    set_payment_settings(store, PaymentSettings("merchant@okbank", "Pay and enter the UTR."))
    set_payment_settings(store, PaymentSettings(instructions="New instructions only"))

    current = get_payment_settings(store)
    assert current.payment_identifier == ""
    assert current.instructions == "New instructions only"


def test_identifier_is_trimmed(store):
    saved = set_payment_settings(store, PaymentSettings("  merchant@okbank \n", "x"))
    assert saved.payment_identifier == "merchant@okbank"
    assert get_payment_settings(store).payment_identifier == "merchant@okbank"


def test_preview_uri_uses_nominal_amount():
    assert upi_preview_uri("merchant@okbank") == (
        "upi://pay?pa=merchant@okbank&pn=NewBi%20Entertainment&am=1&cu=INR"
    )
    assert upi_preview_uri("merchant@okbank") == upi_payment_uri("merchant@okbank", 1)


def test_qr_image_url_carries_the_uri():
    uri = upi_preview_uri("merchant@okbank")
    url = qr_image_url(uri)

    parsed = urlparse(url)
    params = parse_qs(parsed.query)
    assert parsed.netloc == "api.qrserver.com"
    assert params["size"] == ["150x150"]
    assert params["data"] == [uri]
