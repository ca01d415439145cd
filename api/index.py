"""Serverless entrypoint: the hosting platform mounts the grader under ``/api``."""
from starlette.responses import Response

from dsegrader.main import app as grader_app

API_PREFIX = "/api"


def allowed_methods(app) -> str:
    methods = {method for route in app.routes for method in getattr(route, "methods", None) or ()}
    methods.discard("HEAD")
    return ",".join(sorted(methods | {"OPTIONS"}))


class GraderEntrypoint:
    """Strip ``/api`` from request paths and answer browser preflight with the grader's methods."""

    def __init__(self, app, prefix: str = API_PREFIX):
        self.app = app
        self.prefix = prefix
        self.methods = allowed_methods(app)

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        if path.startswith(self.prefix):
            scope = {**scope, "path": path[len(self.prefix):] or "/"}

        if scope.get("method") == "OPTIONS":
            headers = {k.decode("latin1").lower(): v.decode("latin1") for k, v in scope.get("headers", [])}
            response = Response(
                status_code=204,
                headers={
                    "Access-Control-Allow-Origin": headers.get("origin", "*"),
                    "Access-Control-Allow-Methods": self.methods,
                    "Access-Control-Allow-Headers": headers.get(
                        "access-control-request-headers", "Authorization,Content-Type,X-API-Key"
                    ),
                },
            )
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)


app = GraderEntrypoint(grader_app)
