import asyncio
import logging
from typing import AsyncIterator, Optional

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from starlette.requests import ClientDisconnect

from embed_proxy.proxy import (
    ForwardingEngine,
    InboundRequest,
    ProxyError,
    UpstreamResponse,
    UpstreamTransportError,
)
from embed_proxy.proxy.director import has_body
from embed_proxy.proxy.sanitizer import relay_headers
from embed_proxy.utils import log_exception_with_details

router = APIRouter()
logger = logging.getLogger("uvicorn.error")

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]

# Not a registered HTTP status; used when the caller went away mid-request
CLIENT_CLOSED_REQUEST = 499


@router.get("/health", response_class=PlainTextResponse)
async def health():
    return "OK"


async def read_body(request: Request, drained: asyncio.Event) -> AsyncIterator[bytes]:
    try:
        async for chunk in request.stream():
            yield chunk
    finally:
        drained.set()


def build_inbound_request(request: Request, body_drained: asyncio.Event) -> InboundRequest:
    """
    Translate the Starlette request without touching its body.

    ``body_drained`` is set once the body stream has been read to the end
    or abandoned.
    """
    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = request.url.path
    query = request.scope.get("query_string", b"").decode("latin-1")
    if query:
        path = f"{path}?{query}"

    return InboundRequest(
        method=request.method,
        path=path,
        headers=httpx.Headers(request.headers.raw),
        body=read_body(request, body_drained),
        client_host=request.client.host if request.client else None,
    )


async def wait_for_disconnect(
    request: Request, inbound: InboundRequest, body_drained: asyncio.Event
) -> None:
    """Return once the caller has closed the connection."""
    # receive() also delivers the body, so only listen once nobody else reads it
    if has_body(inbound.headers):
        await body_drained.wait()
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def cancel_task(task: asyncio.Task) -> None:
    if task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


async def forward_until_disconnect(
    engine: ForwardingEngine,
    request: Request,
    inbound: InboundRequest,
    body_drained: asyncio.Event,
) -> Optional[UpstreamResponse]:
    """
    Run the outbound call, cancelling it if the caller goes away before the
    upstream answers. Returns None in that case.
    """
    forward = asyncio.create_task(engine.forward(inbound))
    disconnect = asyncio.create_task(
        wait_for_disconnect(request, inbound, body_drained)
    )
    try:
        await asyncio.wait({forward, disconnect}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        await cancel_task(forward)
        await cancel_task(disconnect)

    if forward.cancelled():
        return None
    return forward.result()


async def stream_response(
    upstream: UpstreamResponse, method: str, path: str
) -> AsyncIterator[bytes]:
    """
    Stream the upstream body to the caller and always release the upstream
    connection, including when the caller disconnects mid-transfer.
    """
    try:
        async for chunk in upstream.stream:
            yield chunk
    except UpstreamTransportError as e:
        # Headers are already sent; aborting the connection is all that is left
        log_exception_with_details(
            logger, f"[Proxy] Upstream failed mid-response for {method} {path}:", e.cause
        )
        raise
    except asyncio.CancelledError:
        logger.info(f"[Proxy] Client disconnected during {method} {path}")
        raise
    finally:
        await asyncio.shield(upstream.close())


def build_response(upstream: UpstreamResponse, method: str, path: str) -> Response:
    response = StreamingResponse(
        stream_response(upstream, method, path),
        status_code=upstream.status_code,
    )
    encoding = upstream.headers.encoding
    response.raw_headers = [
        (name.encode(encoding), value.encode(encoding))
        for name, value in relay_headers(upstream.headers)
    ]
    return response


@router.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy_all(request: Request, path: str):
    """Catch-all route that proxies all requests to the target server."""
    engine: ForwardingEngine = request.app.state.engine
    body_drained = asyncio.Event()
    inbound = build_inbound_request(request, body_drained)

    try:
        upstream = await forward_until_disconnect(
            engine, request, inbound, body_drained
        )
    except ProxyError as e:
        return PlainTextResponse(str(e), status_code=e.status_code)
    except ClientDisconnect:
        logger.info(
            f"[Proxy] Client disconnected while sending {inbound.method} {inbound.path}"
        )
        return Response(status_code=CLIENT_CLOSED_REQUEST)

    if upstream is None:
        logger.info(
            f"[Proxy] Client disconnected awaiting upstream for {inbound.method} {inbound.path}"
        )
        return Response(status_code=CLIENT_CLOSED_REQUEST)

    return build_response(upstream, inbound.method, inbound.path)
