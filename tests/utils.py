"""
Test utilities for the membase test suite.
"""

import json
from collections import defaultdict, deque
from urllib.parse import parse_qs

import httpx


class HubRecorder:
    """Fake hub endpoint for `httpx.MockTransport`.

    Records every request. Responses are taken per path from a queue of
    prepared items (a `httpx.Response`, an exception to raise, or a callable
    taking the request), falling back to `default`.
    """

    def __init__(self):
        self.requests = []
        self.responses = defaultdict(deque)
        self.default = lambda request: httpx.Response(200, json={"ok": True})

    def queue(self, path, *items):
        self.responses[path].extend(items)

    async def __call__(self, request):
        self.requests.append(request)
        pending = self.responses.get(request.url.path)
        item = pending.popleft() if pending else self.default

        if isinstance(item, Exception):
            raise item
        if callable(item):
            item = item(request)
            if hasattr(item, "__await__"):
                item = await item
        return item

    def paths(self):
        return [r.url.path for r in self.requests]

    def bodies(self, path="/api/upload"):
        return [json.loads(r.content) for r in self.requests if r.url.path == path]


def form_of(request):
    """Decode a url-encoded request body into a flat dict."""
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


class FakeChain:
    """In-memory chain capability for `Auth` tests."""

    def __init__(self, grants=None, agents=None, valid=True):
        self.grants = set(grants or ())
        self.agents = dict(agents or {})
        self.valid = valid
        self.bought = []
        self.signed = []

    async def has_auth(self, resource_id, grantee_id):
        return (resource_id, grantee_id) in self.grants

    async def buy(self, resource_id, grantee_id):
        self.bought.append((resource_id, grantee_id))
        self.grants.add((resource_id, grantee_id))

    async def sign_message(self, message):
        self.signed.append(message)
        return f"sig:{message}"

    async def valid_signature(self, message, signature, address):
        return self.valid and signature == f"sig:{message}" and address is not None

    async def get_agent(self, agent_id):
        return self.agents.get(agent_id)
