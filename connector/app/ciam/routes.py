"""
API connector endpoints called by Entra External ID / Azure AD B2C user flows.

Routes:
    /login      : Logs the sign-in payload and tells the flow to continue
    /ciam       : Logs any JSON payload, always answers 200 null
    /ciamtest   : Password validation and Graph user management, selected by
                  the body's ``method`` field

Apart from the documented 409 answers and the /login storage failure, these
endpoints never surface errors to the identity platform: failures are
logged and the response is 200 with a null body.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from connector.app.auth.basic import check_basic_auth
from connector.app.auth.tokens import TokenClient, get_http_client, get_token_client
from connector.app.config import Settings, get_settings
from connector.app.db.crud import LogStore, get_log_store
from connector.app.graph.client import GraphClient, GraphError, build_user_body
from connector.app.models import B2CResponseModel, CiamRequest, ResponseContent, UserClaims
from connector.app.retry import do_with_retry


logger = logging.getLogger(__name__)


# =============================================================================
# Router Setup
# =============================================================================

ciam_router = APIRouter(tags=["API Connector"])


INVALID_CREDENTIALS_MESSAGE = "Invalid username or password."
ACCOUNT_EXISTS_MESSAGE = "This account already exists."
LOGIN_FAILED_MESSAGE = "An error occurred while processing your request."


def _null_response() -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_200_OK, content=None)


def _conflict(message: str) -> JSONResponse:
    body = B2CResponseModel.error(message, status.HTTP_409_CONFLICT)
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=body.to_wire())


# =============================================================================
# Login Endpoint
# =============================================================================

@ciam_router.api_route("/login", methods=["GET", "POST"])
async def login(
    request: Request,
    settings: Settings = Depends(get_settings),
    log_store: LogStore = Depends(get_log_store),
):
    """
    Record a sign-in callback and answer ``Continue``.

    The Basic credential check is logged only, unless AUTH.ENFORCE is set,
    in which case a failed check returns 401.

    Returns:
        ResponseContent ``{"version": "1.0.0", "action": "Continue"}``,
        or 500 with a plain message if the body cannot be stored.
    """
    try:
        if not check_basic_auth(request.headers.get("Authorization"), settings):
            logger.warning("HTTP basic authentication validation failed")
            if settings.AUTH.ENFORCE:
                return JSONResponse(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    content=ResponseContent.with_message(
                        "ShowBlockPage", "Unauthorized API connector call."
                    ).to_wire(),
                )

        raw_body = (await request.body()).decode("utf-8")
        message = json.dumps(json.loads(raw_body)) if raw_body.strip() else ""

        logger.info("Login requested")
        await log_store.add(message, log_level="Info")
    except Exception as e:
        logger.error(
            f"Failed to record login request: {e}",
            extra={"exception_type": type(e).__name__},
            exc_info=True,
        )
        return PlainTextResponse(LOGIN_FAILED_MESSAGE, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return JSONResponse(status_code=status.HTTP_200_OK, content=ResponseContent().to_wire())


# =============================================================================
# Ciam Endpoint
# =============================================================================

@ciam_router.api_route("/ciam", methods=["GET", "POST"])
async def ciam(request: Request, log_store: LogStore = Depends(get_log_store)):
    """
    Store any non-null JSON body as a log row.

    Invalid or null JSON is logged as a warning and otherwise ignored.

    Returns:
        Always 200 with a null body
    """
    logger.info("Ciam connector request received", extra={"method": request.method})

    try:
        raw_body = (await request.body()).decode("utf-8")
        if not raw_body:
            return _null_response()

        try:
            data = json.loads(raw_body)
        except json.JSONDecodeError as e:
            logger.warning(f"Request body is not valid JSON: {e}")
            return _null_response()

        if data is None:
            logger.warning("Deserialized data is null")
            return _null_response()

        await log_store.add(json.dumps(data), log_level="Info")
    except Exception as e:
        logger.error(
            f"Error processing ciam request: {e}",
            extra={"exception_type": type(e).__name__},
            exc_info=True,
        )

    return _null_response()


# =============================================================================
# CiamTest Method Handlers
# =============================================================================

async def _handle_read(payload: CiamRequest, graph: GraphClient, settings: Settings) -> JSONResponse:
    if not payload.object_id:
        return _null_response()

    user = await graph.get_user(payload.object_id)
    claims = UserClaims.from_graph_user(user)
    return JSONResponse(status_code=status.HTTP_200_OK, content=claims.to_wire())


async def _handle_create_user(payload: CiamRequest, graph: GraphClient, settings: Settings) -> JSONResponse:
    """
    Create a local account, then register its email authentication method.

    The email method call is retried because a new user is not immediately
    visible to the authentication methods API.
    """
    if not payload.email or not payload.password:
        logger.warning("createUser requires email and password")
        return _null_response()

    user_body = build_user_body(
        display_name=payload.display_name,
        email=payload.email,
        password=payload.password,
        issuer=settings.AZURE_AD.DOMAIN,
        given_name=payload.given_name,
        surname=payload.surname,
    )

    try:
        created = await graph.create_user(user_body)
    except (GraphError, httpx.HTTPError) as e:
        logger.warning(f"User creation failed: {e}")
        return _conflict(ACCOUNT_EXISTS_MESSAGE)

    object_id = created.get("id")
    logger.info("User created", extra={"object_id": object_id})

    try:
        await do_with_retry(
            lambda: graph.add_email_method(object_id, payload.email),
            sleep_period=settings.ENROLMENT_RETRY_DELAY_SECONDS,
            try_count=settings.ENROLMENT_RETRY_ATTEMPTS,
        )
    except Exception as e:
        logger.error(f"Email method registration failed: {e}", extra={"object_id": object_id})
        return _conflict(str(e))

    return JSONResponse(status_code=status.HTTP_200_OK, content=created)


async def _handle_get_phone(payload: CiamRequest, graph: GraphClient, settings: Settings) -> JSONResponse:
    try:
        methods = await graph.list_phone_methods(payload.object_id)
        return JSONResponse(status_code=status.HTTP_200_OK, content=methods[0])
    except Exception as e:
        logger.warning(f"Phone lookup failed: {e}", extra={"object_id": payload.object_id})
        return JSONResponse(status_code=status.HTTP_200_OK, content={"phoneNumberString": "null"})


async def _handle_set_phone(payload: CiamRequest, graph: GraphClient, settings: Settings) -> JSONResponse:
    created = await graph.add_phone_method(payload.object_id, payload.phone_number, phone_type="mobile")
    return JSONResponse(status_code=status.HTTP_200_OK, content=created)


GraphHandler = Callable[[CiamRequest, GraphClient, Settings], Awaitable[JSONResponse]]

GRAPH_METHODS: Dict[str, GraphHandler] = {
    "read": _handle_read,
    "createUser": _handle_create_user,
    "getPhone": _handle_get_phone,
    "setPhone": _handle_set_phone,
}


async def _handle_auth(payload: CiamRequest, token_client: TokenClient) -> JSONResponse:
    result = await token_client.password_grant(payload.email or "", payload.password or "")
    if not result.ok:
        return _conflict(INVALID_CREDENTIALS_MESSAGE)
    return JSONResponse(status_code=status.HTTP_200_OK, content=result.body)


def _parse_ciam_request(raw_body: str) -> Optional[CiamRequest]:
    data: Any = json.loads(raw_body)
    if not isinstance(data, dict):
        return None
    return CiamRequest.model_validate(data)


# =============================================================================
# CiamTest Endpoint
# =============================================================================

@ciam_router.api_route("/ciamtest", methods=["GET", "POST"])
async def ciam_test(
    request: Request,
    settings: Settings = Depends(get_settings),
    log_store: LogStore = Depends(get_log_store),
    token_client: TokenClient = Depends(get_token_client),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Dispatch on the body's ``method`` field.

    - ``auth``: validate email and password; 409 on rejection
    - ``read``: user claims for ``objectId``
    - ``createUser``: create a local account and enrol its email method
    - ``getPhone``: first phone method, or ``{"phoneNumberString": "null"}``
    - ``setPhone``: add a mobile phone method

    Unknown methods and unexpected failures answer 200 null.
    """
    try:
        raw_body = (await request.body()).decode("utf-8")
        await log_store.add(raw_body, log_level="Info")

        payload = _parse_ciam_request(raw_body)
        if payload is None:
            logger.warning("ciamtest body is not a JSON object")
            return _null_response()

        logger.info("ciamtest request", extra={"ciam_method": payload.method})

        if payload.method == "auth":
            return await _handle_auth(payload, token_client)

        access_token = await token_client.acquire_graph_token()
        graph = GraphClient(access_token, http_client, settings.GRAPH.BASE_URL)

        handler = GRAPH_METHODS.get(payload.method or "")
        if handler is None:
            logger.info("Unknown ciamtest method", extra={"ciam_method": payload.method})
            return _null_response()

        return await handler(payload, graph, settings)

    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Invalid ciamtest body: {e}")
    except Exception as e:
        logger.error(
            f"Error processing ciamtest request: {e}",
            extra={"exception_type": type(e).__name__},
            exc_info=True,
        )

    return _null_response()
