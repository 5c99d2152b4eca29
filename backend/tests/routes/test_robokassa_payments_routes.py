from __future__ import annotations

import hashlib
from unittest.mock import MagicMock

from app.api.dependencies.services import get_robokassa_payment_service
from app.core.exceptions import RepositoryException
from app.main import app
from app.models.booking import BookingPaymentStatus
from app.models.robokassa_payment import RobokassaPaymentStatus

PREFIX = "/api/v1/payments/robokassa"


def _md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest().upper()


def _result_form(out_sum: str, inv_id: int, password: str = "pass-two", **extra) -> dict:
    form = {
        "OutSum": out_sum,
        "InvId": str(inv_id),
        "SignatureValue": _md5(f"{out_sum}:{inv_id}:{password}"),
    }
    form.update(extra)
    return form


def test_result_acknowledges_paid_invoice(client, db, booking, make_payment):
    payment = make_payment(77, out_sum="300.00")

    response = client.post(f"{PREFIX}/result", data=_result_form("300", 77))

    assert response.status_code == 200
    assert response.text == "OK77"
    assert response.headers["content-type"].startswith("text/plain")
    db.refresh(payment)
    db.refresh(booking)
    assert payment.status == RobokassaPaymentStatus.PAID.value
    assert payment.result_raw_body.startswith("OutSum=300")
    assert booking.payment_status == BookingPaymentStatus.PAID.value

    replay = client.post(f"{PREFIX}/result", data=_result_form("300", 77))
    assert replay.status_code == 200
    assert replay.text == "OK77"


def test_result_accepts_lowercase_shp_fields(client, db, make_payment):
    payment = make_payment(78, out_sum="10.00")
    form = {
        "OutSum": "10.00",
        "InvId": "78",
        "SignatureValue": _md5("10.00:78:pass-two:Shp_room=7"),
        "shp_room": "7",
    }

    response = client.post(f"{PREFIX}/result", data=form)

    assert response.status_code == 200
    db.refresh(payment)
    assert payment.status == RobokassaPaymentStatus.PAID.value


def test_result_amount_mismatch_is_forbidden(client, db, make_payment):
    payment = make_payment(99, out_sum="100.00")

    response = client.post(f"{PREFIX}/result", data=_result_form("50.00", 99))

    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "AMOUNT_MISMATCH"
    assert body["detail"] == "amount mismatch"
    db.refresh(payment)
    assert payment.status == RobokassaPaymentStatus.FAILED.value


def test_result_invalid_signature_is_forbidden(client, db, make_payment):
    payment = make_payment(80, out_sum="10.00")
    form = _result_form("10.00", 80, password="pass-one")

    response = client.post(f"{PREFIX}/result", data=form)

    assert response.status_code == 403
    assert response.json()["code"] == "SIGNATURE_INVALID"
    assert not response.text.startswith("OK")
    db.refresh(payment)
    assert payment.status == RobokassaPaymentStatus.FAILED.value


def test_result_unknown_invoice_is_not_found(client):
    response = client.post(f"{PREFIX}/result", data=_result_form("10.00", 31337))

    assert response.status_code == 404
    assert response.json()["code"] == "INVOICE_NOT_FOUND"


def test_result_rejects_malformed_inv_id(client):
    response = client.post(
        f"{PREFIX}/result", data={"OutSum": "10.00", "InvId": "abc", "SignatureValue": "X"}
    )
    assert response.status_code == 400

    missing = client.post(f"{PREFIX}/result", data={"OutSum": "10.00"})
    assert missing.status_code == 400


def test_result_store_failure_is_server_error(client):
    failing = MagicMock()
    failing.handle_result_callback.side_effect = RepositoryException("connection reset")
    app.dependency_overrides[get_robokassa_payment_service] = lambda: failing

    response = client.post(f"{PREFIX}/result", data=_result_form("10.00", 5))

    assert response.status_code == 500
    assert response.json()["detail"] == "payment store failure"


def test_success_get_returns_json(client, db, make_payment):
    make_payment(90, out_sum="15.00")
    params = {
        "OutSum": "15.00",
        "InvId": "90",
        "SignatureValue": _md5("15.00:90:pass-one"),
    }

    response = client.get(f"{PREFIX}/success", params=params)

    assert response.status_code == 200
    assert response.json() == {
        "status": "paid",
        "validated": True,
        "transitioned": True,
        "inv_id": 90,
    }

    again = client.get(f"{PREFIX}/success", params=params)
    assert again.json()["transitioned"] is False


def test_success_post_form(client, db, make_payment):
    make_payment(91, out_sum="15.00")
    form = {"OutSum": "15.00", "InvId": "91", "SignatureValue": _md5("15.00:91:pass-one")}

    response = client.post(f"{PREFIX}/success", data=form)

    assert response.status_code == 200
    assert response.json()["validated"] is True


def test_success_invalid_signature_is_forbidden(client, db, make_payment):
    payment = make_payment(92, out_sum="15.00")
    params = {"OutSum": "15.00", "InvId": "92", "SignatureValue": _md5("15.00:92:pass-two")}

    response = client.get(f"{PREFIX}/success", params=params)

    assert response.status_code == 403
    db.refresh(payment)
    assert payment.status == RobokassaPaymentStatus.PENDING.value
    assert payment.success_raw_body is not None


def test_success_redirects_to_frontend(client, robokassa_settings, make_payment):
    robokassa_settings.frontend_payment_success_url = "https://studio.example.test/paid"
    robokassa_settings.frontend_payment_fail_url = "https://studio.example.test/failed?src=rk"
    make_payment(93, out_sum="15.00")
    make_payment(94, out_sum="15.00")

    ok = client.get(
        f"{PREFIX}/success",
        params={"OutSum": "15.00", "InvId": "93", "SignatureValue": _md5("15.00:93:pass-one")},
        follow_redirects=False,
    )
    bad = client.get(
        f"{PREFIX}/success",
        params={"OutSum": "15.00", "InvId": "94", "SignatureValue": "BAD"},
        follow_redirects=False,
    )

    assert ok.status_code == 303
    assert ok.headers["location"] == "https://studio.example.test/paid?inv_id=93"
    assert bad.status_code == 303
    assert bad.headers["location"] == (
        "https://studio.example.test/failed?src=rk&inv_id=94&reason=signature_invalid"
    )


def test_init_returns_checkout_link(client, db, booking):
    response = client.post(
        f"{PREFIX}/init",
        json={"booking_id": booking.id, "out_sum": "1500.00", "description": "Room 7"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "pending"
    assert body["payment_url"].startswith("https://auth.robokassa.ru/Merchant/Index.aspx?")
    assert f"InvId={body['inv_id']}" in body["payment_url"]
    assert body["signature"] == _md5(f"studio-test:1500.00:{body['inv_id']}:pass-one")


def test_init_unknown_booking_is_not_found(client):
    response = client.post(f"{PREFIX}/init", json={"booking_id": 4242, "out_sum": "10.00"})
    assert response.status_code == 404


def test_init_rejects_bad_amount_and_unknown_fields(client, booking):
    bad_amount = client.post(f"{PREFIX}/init", json={"booking_id": booking.id, "out_sum": "-1"})
    extra = client.post(
        f"{PREFIX}/init", json={"booking_id": booking.id, "out_sum": "1.00", "coupon": "x"}
    )

    assert bad_amount.status_code == 400
    assert extra.status_code == 422


def test_init_without_credentials_is_server_error(client, robokassa_settings, booking):
    robokassa_settings.robokassa_merchant_login = ""

    response = client.post(f"{PREFIX}/init", json={"booking_id": booking.id, "out_sum": "1.00"})

    assert response.status_code == 500
    assert response.json()["code"] == "PAYMENT_NOT_CONFIGURED"


def test_prometheus_endpoint_exposes_payment_counters(client, make_payment):
    make_payment(95, out_sum="15.00")
    client.post(f"{PREFIX}/result", data=_result_form("15.00", 95))

    response = client.get("/metrics/prometheus")

    assert response.status_code == 200
    assert "robokassa_callback_total" in response.text
    assert "studio_service_operations_total" in response.text


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
