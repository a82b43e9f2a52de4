"""Canned SSO pages, a scripted transport and a fake clock shared by the tests."""
import json
from dataclasses import dataclass

from garmin_uploader.errors import TransportError
from garmin_uploader.transport import HttpResponse, Transport, status_allowed

SIGNIN_PAGE = (
    "<html><head><title>GARMIN Authentication Application</title></head><body>"
    '<form method="post"><input type="hidden" name="_csrf" value="csrf-signin" /></form>'
    "</body></html>"
)
SUCCESS_PAGE = (
    "<html><head><title>Success</title></head><body><script>"
    'var response_url = "https://sso.garmin.com/sso/embed?ticket=ST-0123-abc-cas";'
    "</script></body></html>"
)
MFA_PAGE = (
    "<html><head><title>GARMIN > MFA Challenge</title></head><body>"
    '<form method="post"><input type="hidden" name="_csrf" value="csrf-mfa" /></form>'
    "</body></html>"
)
BAD_CREDENTIALS_PAGE = (
    "<html><head><title>GARMIN Authentication Application</title></head><body>"
    '<div id="status">Invalid sign in.</div>'
    '<input type="hidden" name="_csrf" value="csrf-retry" />'
    "</body></html>"
)
OAUTH1_BODY = "oauth_token=oauth1-token&oauth_token_secret=oauth1-secret"
OAUTH2_BODY = json.dumps({
    "scope": "CONNECT_WRITE",
    "jti": "abc",
    "access_token": "bearer-token",
    "token_type": "Bearer",
    "refresh_token": "refresh-token",
    "expires_in": 3600,
    "refresh_token_expires_in": 7200,
})


@dataclass
class Route:
    method: str
    url_part: str
    status: int = 200
    text: str = ""
    exc: Exception | None = None


@dataclass
class Call:
    method: str
    url: str
    params: dict | None = None
    headers: dict | None = None
    data: object = None
    files: dict | None = None


class FakeTransport(Transport):
    """Replays scripted responses in order, matching on method and URL part."""

    def __init__(self) -> None:
        self.routes: list[Route] = []
        self.calls: list[Call] = []
        self.closed = False

    def add(self, method, url_part, text="", status=200, exc=None) -> "FakeTransport":
        self.routes.append(Route(method, url_part, status, text, exc))
        return self

    def add_json(self, method, url_part, body, status=200) -> "FakeTransport":
        return self.add(method, url_part, json.dumps(body), status)

    async def _dispatch(self, call: Call, allow_status) -> HttpResponse:
        self.calls.append(call)
        for i, route in enumerate(self.routes):
            if route.method == call.method and route.url_part in call.url:
                del self.routes[i]
                break
        else:
            raise AssertionError(f"Unexpected request {call.method} {call.url}")
        if route.exc is not None:
            raise route.exc
        if not status_allowed(route.status, allow_status):
            raise TransportError(f"HTTP {route.status}", status=route.status, body=route.text)
        return HttpResponse(status=route.status, url=call.url, text=route.text)

    async def get(self, url, *, params=None, headers=None, allow_status=None):
        return await self._dispatch(Call("GET", url, params, headers), allow_status)

    async def post(self, url, *, params=None, headers=None, data=None, files=None, allow_status=None):
        return await self._dispatch(Call("POST", url, params, headers, data, files), allow_status)

    async def close(self) -> None:
        self.closed = True

    def calls_to(self, url_part: str) -> list[Call]:
        return [c for c in self.calls if url_part in c.url]


def script_login(transport: FakeTransport, signin_result: str = SUCCESS_PAGE) -> FakeTransport:
    transport.add("GET", "/sso/embed", "<html>embed</html>")
    transport.add("GET", "/sso/signin", SIGNIN_PAGE)
    transport.add("POST", "/sso/signin", signin_result)
    return transport


def script_exchange(transport: FakeTransport) -> FakeTransport:
    transport.add("GET", "/oauth-service/oauth/preauthorized", OAUTH1_BODY)
    transport.add("POST", "/oauth-service/oauth/exchange/user/2.0", OAUTH2_BODY)
    return transport


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


