from starlette.middleware.cors import CORSMiddleware
from starlette.types import Receive, Scope, Send


class PreflightCORSMiddleware(CORSMiddleware):
    """
    Answers CORS preflight requests locally, for any requested method.

    Every other request passes through untouched: the response sanitizer
    owns the CORS headers of proxied responses.
    """

    def __init__(self, app):
        super().__init__(
            app,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    async def simple_response(
        self, scope: Scope, receive: Receive, send: Send, request_headers
    ) -> None:
        await self.app(scope, receive, send)
