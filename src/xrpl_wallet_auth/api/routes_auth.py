from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable

from fastapi import Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from ..errors import AuthFlowError, UnknownError
from ..service import AuthService
from .security import bearer_token, json_body

logger = logging.getLogger(__name__)

Endpoint = Callable[[Request], Awaitable[JSONResponse]]


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


def tagged_errors(fn: Endpoint) -> Endpoint:
    """Let tagged errors through; anything else becomes UnknownError (400)."""

    @functools.wraps(fn)
    async def wrapper(request: Request) -> JSONResponse:
        try:
            return await fn(request)
        except AuthFlowError:
            raise
        except Exception as err:
            logger.error(f"{fn.__name__} failed: {err}", exc_info=True)
            raise UnknownError(str(err) or None) from err

    return wrapper


async def _signature(request: Request) -> str | None:
    signature = request.query_params.get("signature")
    if signature:
        return signature
    body = await json_body(request)
    return body.get("signature")


@tagged_errors
async def session_validate(request: Request) -> JSONResponse:
    """Exchange a stored session token for the address it asserts."""
    body = await json_body(request)
    address = _service(request).validate_session(body.get("token"))
    return JSONResponse({"address": address})


@tagged_errors
async def out_of_band_create(request: Request) -> JSONResponse:
    payload = await run_in_threadpool(_service(request).create_payload)
    return JSONResponse(payload.to_dict())


@tagged_errors
async def out_of_band_status(request: Request) -> JSONResponse:
    payload_id = request.query_params.get("payloadId")
    payload = await run_in_threadpool(_service(request).get_payload, payload_id)
    return JSONResponse({"payload": payload})


@tagged_errors
async def out_of_band_verify(request: Request) -> JSONResponse:
    blob_hex = request.query_params.get("signedBlobHex") or request.query_params.get("hex")
    grant = _service(request).verify_payload(blob_hex)
    return JSONResponse(grant.to_dict())


@tagged_errors
async def extension_b_nonce(request: Request) -> JSONResponse:
    params = request.query_params
    public_key = params.get("publicKey") or params.get("pubkey")
    challenge = _service(request).issue_nonce(public_key, params.get("address"))
    return JSONResponse({"nonceToken": challenge.token})


@tagged_errors
async def extension_b_verify(request: Request) -> JSONResponse:
    nonce_token = bearer_token(request)
    signature = await _signature(request)
    grant = _service(request).verify_nonce(nonce_token, signature)
    return JSONResponse(grant.to_dict())


@tagged_errors
async def extension_c_challenge(request: Request) -> JSONResponse:
    challenge = _service(request).issue_hash()
    return JSONResponse({"challengeHex": challenge.value})


@tagged_errors
async def extension_c_verify(request: Request) -> JSONResponse:
    challenge_hex = bearer_token(request)
    body = await json_body(request)
    signature = request.query_params.get("signature") or body.get("signature")
    public_key = body.get("publicKey") or body.get("pubkey")
    grant = _service(request).verify_hash(challenge_hex, signature, public_key, body.get("address"))
    return JSONResponse(grant.to_dict())


ROUTES: list[tuple[str, Endpoint, list[str]]] = [
    ("/session/validate", session_validate, ["POST"]),
    ("/challenge/outOfBand/create", out_of_band_create, ["GET"]),
    ("/challenge/outOfBand/status", out_of_band_status, ["GET"]),
    ("/challenge/outOfBand/verify", out_of_band_verify, ["GET"]),
    ("/challenge/extensionB/nonce", extension_b_nonce, ["GET"]),
    ("/challenge/extensionB/verify", extension_b_verify, ["POST"]),
    ("/challenge/extensionC/challenge", extension_c_challenge, ["GET"]),
    ("/challenge/extensionC/verify", extension_c_verify, ["POST"]),
]
