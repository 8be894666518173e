import json
from datetime import datetime, timezone

import pytest
import requests


class FakeResponse:
    def __init__(self, status_code=200, body=None, raw=None):
        self.status_code = status_code
        self._body = body
        self._raw = raw

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    @property
    def text(self):
        if self._raw is not None:
            return self._raw
        return json.dumps(self._body) if self._body is not None else ""

    @property
    def content(self):
        return self.text.encode("utf-8")

    def json(self):
        if self._raw is not None:
            return json.loads(self._raw)
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class FakeDeviceSession:
    """
    Stands in for requests.Session against a WLED device.

    POSTs to /json/state merge on/bri into the held state; everything is
    recorded in .requests as (method, path, kwargs).
    """

    def __init__(self, state=None, info=None, fail=False):
        self.state = state if state is not None else {"on": False, "bri": 0, "seg": [{"id": 0}]}
        self.info = info if info is not None else {"leds": {"count": 120, "rgbw": True}}
        self.fail = fail
        self.requests = []
        self.closed = False

    def _path(self, url):
        return "/" + url.split("/", 3)[3]

    def get(self, url, **kwargs):
        path = self._path(url)
        self.requests.append(("GET", path, kwargs))
        if self.fail:
            raise requests.ConnectionError("unreachable")
        if path == "/json/state":
            return FakeResponse(200, dict(self.state))
        if path == "/json/info":
            return FakeResponse(200, self.info)
        return FakeResponse(404, {"error": "not found"})

    def post(self, url, **kwargs):
        path = self._path(url)
        self.requests.append(("POST", path, kwargs))
        if self.fail:
            raise requests.ConnectionError("unreachable")
        if path == "/json/state":
            body = kwargs.get("json") or {}
            for key in ("on", "bri"):
                if key in body:
                    self.state[key] = body[key]
        return FakeResponse(200, {"success": True})

    def posts(self):
        return [r for r in self.requests if r[0] == "POST"]

    def close(self):
        self.closed = True


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocRef:
    """
    Command document that moves to a terminal status after a number of reads.

    complete_after=None means the executing side never answers.
    """

    def __init__(self, doc_id, data, complete_after=None, final=None):
        self.id = doc_id
        self.data = data
        self.complete_after = complete_after
        self.final = final or {}
        self.reads = 0
        self.updates = []

    async def get(self):
        self.reads += 1
        if self.complete_after is not None and self.reads >= self.complete_after:
            self.data.update(self.final)
        return FakeSnapshot(self.id, self.data)

    async def update(self, fields):
        self.updates.append(fields)
        self.data.update(fields)


class FakeCommandsCollection:
    def __init__(self, complete_after=None, final=None, fail_add=False):
        self.complete_after = complete_after
        self.final = final
        self.fail_add = fail_add
        self.docs = []

    async def add(self, data):
        if self.fail_add:
            raise RuntimeError("permission denied")
        data = dict(data)
        # Firestore resolves SERVER_TIMESTAMP on write
        data["createdAt"] = datetime.now(timezone.utc)
        doc = FakeDocRef(f"cmd{len(self.docs) + 1}", data, self.complete_after, self.final)
        self.docs.append(doc)
        return None, doc


class FakeFirestore:
    """Minimal AsyncClient: users/{uid}/commands only"""

    def __init__(self, commands):
        self.commands = commands
        self.paths = []

    def collection(self, name):
        return _FakePath(self, [name])


class _FakePath:
    def __init__(self, client, parts):
        self.client = client
        self.parts = parts

    def document(self, name):
        return _FakePath(self.client, self.parts + [name])

    def collection(self, name):
        self.client.paths.append("/".join(self.parts + [name]))
        return self.client.commands


@pytest.fixture
def device_session():
    return FakeDeviceSession()


@pytest.fixture
def commands():
    return FakeCommandsCollection()
