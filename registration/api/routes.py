"""
FastAPI routes for the class registration backend.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from registration.clients import CalendarError, HubSpotError, StoreUnavailableError
from registration.clients.oauth import OAuthTokenExchangeError
from registration.dependencies import (
    get_app_settings,
    get_booking_store,
    get_calendar_client,
    get_oauth_state_encoder,
    get_registration_service,
    get_token_manager,
    integration_settings,
)
from registration.schemas import (
    AvailabilityRequest,
    AvailabilityResponse,
    CalendarTestRequest,
    CalendarTestResponse,
    IntegrationStatus,
    OAuthCallbackPayload,
    RegistrationRequest,
    RegistrationResult,
)
from registration.services import (
    CALENDAR,
    CRM,
    IntegrationNotConfiguredError,
    InvalidCaptchaError,
    NotAuthorizedError,
    RefreshFailedError,
)
from registration.services.registration import to_booking_date

router = APIRouter()
logger = logging.getLogger(__name__)

_SYSTEMS = (CRM, CALENDAR)
_INTEGRATION_ERRORS = (
    IntegrationNotConfiguredError,
    NotAuthorizedError,
    RefreshFailedError,
    StoreUnavailableError,
)


def _integration_unavailable(exc: Exception) -> HTTPException:
    """Map token lifecycle failures onto a 503 the form can surface."""
    if isinstance(exc, IntegrationNotConfiguredError):
        detail = f"The {exc.system} integration is not configured."
    elif isinstance(exc, NotAuthorizedError):
        detail = f"The {exc.system} integration requires initial setup."
    elif isinstance(exc, RefreshFailedError):
        detail = f"The {exc.system} integration is temporarily unavailable."
    else:
        detail = "Storage is temporarily unavailable."
    logger.error("Integration unavailable: %s", exc)
    return HTTPException(status_code=HTTPStatus.SERVICE_UNAVAILABLE, detail=detail)


def _validate_system(system: str) -> str:
    if system not in _SYSTEMS:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Unknown integration.")
    return system


SystemPath = Annotated[str, Path(description="Integration key: 'crm' or 'calendar'.")]


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/integrations", response_model=list[IntegrationStatus])
async def list_integrations(
    token_manager: Annotated[Any, Depends(get_token_manager)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> list[IntegrationStatus]:
    """Report which integrations are configured and connected."""
    configured_settings = integration_settings(settings)
    statuses = []
    for system in _SYSTEMS:
        configured = token_manager.is_configured(system)
        connected = False
        error = None
        if configured:
            try:
                connected = token_manager.is_connected(system)
            except StoreUnavailableError as exc:
                error = str(exc)
        statuses.append(
            IntegrationStatus(
                system=system,
                configured=configured,
                connected=connected,
                missing_settings=configured_settings[system].missing_keys(),
                error=error,
            )
        )
    return statuses


@router.get("/auth/{system}/authorize", status_code=HTTPStatus.OK)
async def start_oauth_flow(
    request: Request,
    system: SystemPath,
    token_manager: Annotated[Any, Depends(get_token_manager)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    redirect_to: str | None = Query(
        default=None,
        description="Optional URL to redirect back to on successful authentication.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the provider consent screen.",
    ),
) -> Any:
    """
    Kick off the authorization-code flow that creates an integration's credential.
    """
    _validate_system(system)
    try:
        oauth_client = token_manager.oauth_client(system)
    except IntegrationNotConfiguredError as exc:
        raise _integration_unavailable(exc) from exc

    state = state_encoder.encode(
        {
            "nonce": uuid.uuid4().hex,
            "system": system,
            "redirect_to": redirect_to,
            "issued_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    authorization_url = oauth_client.build_authorization_url(state=state)

    wants_html = "text/html" in request.headers.get("accept", "").lower()
    if redirect or wants_html:
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return {"authorization_url": authorization_url, "state": state}


@router.post("/auth/{system}/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback(
    system: SystemPath,
    payload: OAuthCallbackPayload,
    token_manager: Annotated[Any, Depends(get_token_manager)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    """Complete the exchange and store the integration's first credential."""
    _validate_system(system)
    state_data = state_encoder.decode(payload.state)

    if state_data.get("system") != system:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="OAuth state was issued for a different integration.",
        )

    issued_at_raw = state_data.get("issued_at")
    if not issued_at_raw:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Missing issued_at in state token.",
        )
    try:
        issued_at = datetime.fromisoformat(issued_at_raw)
    except ValueError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Invalid issued_at in state token.",
        ) from exc
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)

    if datetime.now(timezone.utc) - issued_at > timedelta(seconds=settings.state_ttl_seconds):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="OAuth state token has expired."
        )

    try:
        oauth_client = token_manager.oauth_client(system)
        grant = await oauth_client.exchange_authorization_code(payload.code)
        token_manager.store_authorization(system, grant)
    except OAuthTokenExchangeError as exc:
        logger.error("Authorization code exchange for %s failed: %s", system, exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Failed to exchange authorization code.",
        ) from exc
    except (IntegrationNotConfiguredError, StoreUnavailableError) as exc:
        raise _integration_unavailable(exc) from exc

    logger.info("%s integration connected", system)
    return {"status": "connected", "system": system, "redirect_to": state_data.get("redirect_to")}


@router.get("/auth/{system}/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback_get(
    request: Request,
    system: SystemPath,
    token_manager: Annotated[Any, Depends(get_token_manager)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    state: str = Query(..., description="OAuth state token."),
    code: str = Query(..., description="Authorization code returned by the provider."),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    result = await handle_oauth_callback(
        system=system,
        payload=OAuthCallbackPayload(state=state, code=code),
        token_manager=token_manager,
        state_encoder=state_encoder,
        settings=settings,
    )

    wants_html = "text/html" in request.headers.get("accept", "").lower()
    redirect_target = result.get("redirect_to") or settings.frontend_base_url
    if redirect_target and (redirect or wants_html):
        return RedirectResponse(url=str(redirect_target), status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return JSONResponse(content=result)


@router.post("/check-availability", response_model=AvailabilityResponse)
async def check_availability(
    payload: AvailabilityRequest,
    bookings: Annotated[Any, Depends(get_booking_store)],
) -> AvailabilityResponse:
    """Report whether a class date and time slot is still open."""
    try:
        booking_date = to_booking_date(payload.class_date)
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc

    try:
        taken = bookings.is_booked(date=booking_date, time_slot=payload.time)
    except StoreUnavailableError as exc:
        raise _integration_unavailable(exc) from exc

    if taken:
        return AvailabilityResponse(
            available=False,
            date=payload.class_date,
            time=payload.time,
            message=f"Date {payload.class_date} and time {payload.time} are already booked.",
        )
    return AvailabilityResponse(available=True)


@router.get("/booked-dates", status_code=HTTPStatus.OK)
async def booked_dates(
    bookings: Annotated[Any, Depends(get_booking_store)],
) -> dict[str, list[str]]:
    """Map each booked date (MM/DD/YYYY) to its taken time slots."""
    try:
        return bookings.booked_dates()
    except StoreUnavailableError as exc:
        raise _integration_unavailable(exc) from exc


@router.post("/intro-to-ai-payment", response_model=RegistrationResult)
async def submit_registration(
    payload: RegistrationRequest,
    service: Annotated[Any, Depends(get_registration_service)],
) -> Any:
    """Verify the captcha, upsert the CRM contact and record the bookings."""
    logger.info("Registration received for %s", payload.email)
    try:
        return await service.register(payload)
    except InvalidCaptchaError:
        return JSONResponse(
            status_code=HTTPStatus.BAD_REQUEST,
            content={"message": "Invalid reCAPTCHA token"},
        )
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc
    except _INTEGRATION_ERRORS as exc:
        raise _integration_unavailable(exc) from exc
    except HubSpotError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail={"message": "Error processing contact data", "error": exc.body or str(exc)},
        ) from exc


@router.post("/test-outlook", response_model=CalendarTestResponse)
async def create_test_event(
    payload: CalendarTestRequest,
    calendar: Annotated[Any, Depends(get_calendar_client)],
) -> Any:
    """Create one calendar event without going through the form."""
    if not payload.date_iso or not payload.time_label:
        return JSONResponse(
            status_code=HTTPStatus.BAD_REQUEST,
            content={"ok": False, "error": "dateISO and timeLabel are required"},
        )

    try:
        event = await calendar.create_event(
            company=payload.company or "Test Company",
            student_name="",
            student_email=payload.email or "",
            date_iso=payload.date_iso,
            time_label=payload.time_label,
        )
    except ValueError as exc:
        return JSONResponse(
            status_code=HTTPStatus.BAD_REQUEST, content={"ok": False, "error": str(exc)}
        )
    except _INTEGRATION_ERRORS as exc:
        raise _integration_unavailable(exc) from exc
    except CalendarError as exc:
        logger.error("Test calendar event failed: %s", exc)
        return JSONResponse(
            status_code=HTTPStatus.BAD_GATEWAY, content={"ok": False, "error": str(exc)}
        )

    return CalendarTestResponse(ok=True, event=event)


__all__ = ["router"]
