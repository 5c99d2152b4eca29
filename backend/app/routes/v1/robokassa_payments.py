# backend/app/routes/v1/robokassa_payments.py
"""
Robokassa payment endpoints (v1).

Mounted under /api/v1/payments/robokassa:
- POST /init     issue an invoice and return the checkout URL
- POST /result   ResultURL server-to-server notification (answers ``OK<InvId>``)
- GET|POST /success  SuccessURL browser redirect
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse, Response

from ...api.dependencies.services import get_robokassa_payment_service, get_settings
from ...core.config import Settings
from ...core.exceptions import DomainException, RepositoryException, raise_503_if_pool_exhaustion
from ...schemas.robokassa_payment import (
    InitPaymentRequest,
    InitPaymentResponse,
    SuccessCallbackResponse,
)
from ...services.robokassa_payment_service import RobokassaPaymentService

logger = logging.getLogger(__name__)

# v1 router - mounted under /api/v1/payments/robokassa
router = APIRouter(tags=["payments-robokassa"])

_SHP_PREFIX_LOWER = "shp_"


def _field(params: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive lookup; Robokassa is inconsistent about field casing."""
    value = params.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in params.items():
        if key.lower() == lowered:
            return candidate
    return None


def collect_shp_params(params: Mapping[str, str]) -> dict[str, str]:
    """Extract ``Shp_*`` fields keyed without the prefix."""
    return {
        key[len(_SHP_PREFIX_LOWER) :]: value
        for key, value in params.items()
        if key.lower().startswith(_SHP_PREFIX_LOWER) and len(key) > len(_SHP_PREFIX_LOWER)
    }


def _parse_inv_id(raw: Optional[str]) -> int:
    try:
        inv_id = int((raw or "").strip())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="invalid InvId"
        ) from None
    if inv_id <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid InvId")
    return inv_id


async def _read_callback_params(request: Request) -> tuple[dict[str, str], str]:
    """Merge query and form fields; return them with the raw payload for auditing."""
    params: dict[str, str] = {key: value for key, value in request.query_params.items()}
    raw_body = request.url.query or ""
    if request.method == "POST":
        body = await request.body()
        if body:
            raw_body = body.decode("utf-8", errors="replace")
        form = await request.form()
        for key, value in form.items():
            if isinstance(value, str):
                params[key] = value
    return params, raw_body


def _store_failure(exc: RepositoryException) -> HTTPException:
    raise_503_if_pool_exhaustion(exc)
    logger.error("Robokassa payment store failure: %s", exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="payment store failure"
    )


def _with_query(url: str, params: dict[str, str]) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"


@router.post("/init", response_model=InitPaymentResponse)
async def init_payment(
    payload: InitPaymentRequest,
    service: RobokassaPaymentService = Depends(get_robokassa_payment_service),
) -> InitPaymentResponse:
    """Issue a Robokassa invoice for a booking and return the checkout link."""
    try:
        result = await asyncio.to_thread(
            service.init_payment,
            payload.booking_id,
            payload.out_sum,
            payload.description,
            payload.shp_params,
        )
    except RepositoryException as exc:
        raise _store_failure(exc) from exc
    return InitPaymentResponse(
        inv_id=result.inv_id,
        payment_url=result.payment_url,
        signature=result.signature,
        status=result.status,
    )


@router.post("/result", response_class=PlainTextResponse)
async def robokassa_result(
    request: Request,
    service: RobokassaPaymentService = Depends(get_robokassa_payment_service),
) -> PlainTextResponse:
    """
    ResultURL notification.

    Answers ``OK<InvId>`` only after the payment is recorded as paid; every
    rejection is a non-2xx status so Robokassa keeps retrying genuine
    notifications.
    """
    params, raw_body = await _read_callback_params(request)
    inv_id = _parse_inv_id(_field(params, "InvId"))

    try:
        outcome = await asyncio.to_thread(
            service.handle_result_callback,
            (_field(params, "OutSum") or "").strip(),
            inv_id,
            _field(params, "SignatureValue"),
            collect_shp_params(params),
            raw_body,
        )
    except RepositoryException as exc:
        raise _store_failure(exc) from exc
    return PlainTextResponse(outcome.ack)


async def _handle_success(
    request: Request,
    service: RobokassaPaymentService,
    app_settings: Settings,
) -> Response:
    params, raw_body = await _read_callback_params(request)
    inv_id = _parse_inv_id(_field(params, "InvId"))
    success_redirect = app_settings.frontend_payment_success_url
    fail_redirect = app_settings.frontend_payment_fail_url

    try:
        outcome = await asyncio.to_thread(
            service.handle_success_callback,
            (_field(params, "OutSum") or "").strip(),
            inv_id,
            _field(params, "SignatureValue"),
            collect_shp_params(params),
            raw_body,
        )
    except DomainException as exc:
        if fail_redirect:
            return RedirectResponse(
                _with_query(fail_redirect, {"inv_id": str(inv_id), "reason": exc.code.lower()}),
                status_code=status.HTTP_303_SEE_OTHER,
            )
        raise
    except RepositoryException as exc:
        raise _store_failure(exc) from exc

    if success_redirect:
        return RedirectResponse(
            _with_query(success_redirect, {"inv_id": str(outcome.inv_id)}),
            status_code=status.HTTP_303_SEE_OTHER,
        )
    body = SuccessCallbackResponse(
        status=outcome.status,
        validated=outcome.validated,
        transitioned=outcome.transitioned,
        inv_id=outcome.inv_id,
    )
    return Response(content=body.model_dump_json(), media_type="application/json")


@router.get("/success", response_model=SuccessCallbackResponse)
async def robokassa_success_get(
    request: Request,
    service: RobokassaPaymentService = Depends(get_robokassa_payment_service),
    app_settings: Settings = Depends(get_settings),
) -> Response:
    """SuccessURL redirect delivered with GET."""
    return await _handle_success(request, service, app_settings)


@router.post("/success", response_model=SuccessCallbackResponse)
async def robokassa_success_post(
    request: Request,
    service: RobokassaPaymentService = Depends(get_robokassa_payment_service),
    app_settings: Settings = Depends(get_settings),
) -> Response:
    """SuccessURL redirect delivered with POST."""
    return await _handle_success(request, service, app_settings)
