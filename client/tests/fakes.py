"""Test doubles shared by the client tests: a routed mock backend and a fake status channel."""

import asyncio
import json

import httpx

from cidash.api import ApiClient, BackendApi

BASE_URL = "http://backend.test"
REPO_URL = "https://x/y.git"

REPOSITORIES = {"repositories": [{"id": 1, "url": REPO_URL, "name": "y"}, {"id": 2, "url": "https://x/z.git"}]}
BRANCHES = {
    "branches": [
        {"name": "feature-a", "lastCommit": "f00d"},
        {"name": "main", "isCurrent": True, "lastCommit": "beef"},
        {"name": "origin/main", "isRemote": True, "remoteName": "origin"},
    ]
}


class FakeBackend:
    """
    Callable handler for httpx.MockTransport.

    Routes are keyed by (method, path). A route may be gated: the first
    request to it waits until the returned event is set.
    """

    def __init__(self):
        self.routes = {}
        self.gates = {}
        self.requests = []

    def on(self, method, path, status=200, body=None, handler=None):
        self.routes[(method, path)] = (status, body, handler)

    def gate(self, method, path):
        event = asyncio.Event()
        self.gates[(method, path)] = event
        return event

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        key = (request.method, request.url.path)
        self.requests.append(request)

        # The route is resolved on arrival, so a gated request answers with
        # what was configured when it was sent
        route = self.routes.get(key)
        gate = self.gates.pop(key, None)
        if gate is not None:
            await gate.wait()

        if route is None:
            return httpx.Response(404, json={"error": f"No route for {request.method} {request.url.path}"})

        status, body, handler = route
        if handler is not None:
            return handler(request)
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def last_json(self, method, path):
        return json.loads(self.calls(method, path)[-1].content)

    def api(self) -> BackendApi:
        return BackendApi(ApiClient(base_url=BASE_URL, transport=httpx.MockTransport(self)))


def with_defaults(backend: FakeBackend) -> FakeBackend:
    backend.on("GET", "/repository/list", body=REPOSITORIES)
    backend.on("GET", "/imagebuilder/branches", body=BRANCHES)
    return backend


def connection_error(request):
    raise httpx.ConnectError("Connection refused", request=request)


class FakeChannel:
    def __init__(self, fail_open=None):
        self.fail_open = fail_open
        self.url = None
        self.closed = False
        self._on_frame = None
        self._on_error = None
        self._on_close = None

    async def open(self, url, on_frame, on_error, on_close):
        if self.fail_open is not None:
            raise self.fail_open
        self.url = url
        self._on_frame = on_frame
        self._on_error = on_error
        self._on_close = on_close

    async def close(self):
        self.closed = True

    def frame(self, status, message="", time=None):
        payload = {"status": status, "message": message}
        if time is not None:
            payload["time"] = time
        self._on_frame(json.dumps(payload))

    def raw(self, data):
        self._on_frame(data)

    def error(self, exc=None):
        self._on_error(exc)

    def finish(self, clean=True):
        self._on_close(clean)


class FakeChannelFactory:
    def __init__(self):
        self.channels = []
        self.fail_next = None

    def __call__(self):
        channel = FakeChannel(self.fail_next)
        self.fail_next = None
        self.channels.append(channel)
        return channel

    @property
    def last(self) -> FakeChannel:
        return self.channels[-1]
