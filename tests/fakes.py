"""
tests/fakes.py – in-process fake of the Klaviyo API and sample upstream data.
"""
from __future__ import annotations

import json
from typing import Any, Callable, Optional, Union

import httpx

# ── Fake Klaviyo ──────────────────────────────────────────────────────────────

Handler = Callable[[httpx.Request], httpx.Response]


class FakeKlaviyo:
    """Routes requests by (method, path) and records every request it sees.

    Paths are given relative to the API root, e.g. ``"templates/T1"``.
    Unregistered routes answer 404.
    """

    def __init__(self, base_path: str = "/api/") -> None:
        self.base_path = base_path
        self.routes: dict[tuple[str, str], Union[Handler, Exception]] = {}
        self.requests: list[httpx.Request] = []

    def _key(self, method: str, path: str) -> tuple[str, str]:
        return method.upper(), self.base_path + path.lstrip("/")

    def add(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        status_code: int = 200,
        text: Optional[str] = None,
        handler: Optional[Handler] = None,
        exc: Optional[Exception] = None,
    ) -> None:
        if exc is not None:
            self.routes[self._key(method, path)] = exc
            return
        if handler is None:
            def handler(request: httpx.Request) -> httpx.Response:
                if text is not None:
                    return httpx.Response(status_code, text=text)
                return httpx.Response(status_code, json=json_body)
        self.routes[self._key(method, path)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"errors": [{"detail": "not found"}]})
        if isinstance(route, Exception):
            raise route
        return route(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        key = self._key(method, path)
        return [r for r in self.requests if (r.method, r.url.path) == key]


def request_json(request: httpx.Request) -> dict[str, Any]:
    return json.loads(request.content.decode("utf-8"))


# ── Sample upstream data ──────────────────────────────────────────────────────

SUMMER_TEMPLATE_HTML = """\
<html><head><style>.hero { color: red; }</style><script>track();</script></head>
<body>
<!-- header -->
<p>Summer sale starts now. Summer styles for everyone.</p>
<a href="https://shop.example.com/home">Home</a>
<table><tr>
  <td class="kl-button" style="background:#000"><a href="https://shop.example.com/summer"><p>Shop the sale</p></a></td>
</tr></table>
<a href="https://example.com/unsubscribe">Unsubscribe</a>
</body></html>
"""


def _campaign(cid: str, name: str, message_id: str, created: str) -> dict[str, Any]:
    return {
        "type": "campaign",
        "id": cid,
        "attributes": {"name": name, "status": "Sent", "created_at": created},
        "relationships": {
            "campaign-messages": {"data": [{"type": "campaign-message", "id": message_id}]}
        },
    }


def _message(mid: str, subject: str, preview: str, template_id: Optional[str]) -> dict[str, Any]:
    message: dict[str, Any] = {
        "type": "campaign-message",
        "id": mid,
        "attributes": {
            "channel": "email",
            "content": {"subject": subject, "preview_text": preview},
        },
    }
    if template_id:
        message["relationships"] = {"template": {"data": {"type": "template", "id": template_id}}}
    return message


def sample_listing() -> dict[str, Any]:
    return {
        "data": [
            _campaign("C1", "Summer Sale Kickoff", "M1", "2025-06-01T10:00:00+00:00"),
            _campaign("C2", "Winter Clearance", "M2", "2025-01-10T10:00:00+00:00"),
            _campaign("C3", "Spring Launch", "M3", "2025-03-20T10:00:00+00:00"),
        ],
        "included": [
            _message("M1", "Get 20% off", "Sunny deals inside", "T1"),
            _message("M2", "Cold weather, warm savings", "Bundle up", "T2"),
            _message("M3", "Fresh arrivals", "New season picks", None),
        ],
        "links": {"self": "https://a.klaviyo.com/api/campaigns", "next": None},
    }


