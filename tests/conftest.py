import re
from collections import defaultdict, deque

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from storeops.catalog.errors import CatalogError
from storeops.db.migrate import run_migrations

OPERATION_RE = re.compile(r"(?:query|mutation)\s+(\w+)")


def operation_name(query: str) -> str:
    match = OPERATION_RE.search(query)
    assert match, "GraphQL document without an operation name"
    return match.group(1)


def connection(nodes, has_next=False, end_cursor=None):
    return {
        "edges": [{"cursor": f"c{idx}", "node": node} for idx, node in enumerate(nodes)],
        "pageInfo": {"hasNextPage": has_next, "endCursor": end_cursor},
    }


def ok(**data):
    return {"data": data}


class FakeCatalog:
    """Admin API double answering each operation from a queue of scripted bodies.

    The last body queued for an operation keeps answering once the queue is
    down to one entry. A queued exception is raised, a callable is called with
    the variables.
    """

    def __init__(self):
        self.responses = defaultdict(deque)
        self.calls = []
        self.closed = False

    def on(self, operation, *bodies):
        self.responses[operation].extend(bodies)
        return self

    def called(self, operation):
        return [variables for name, variables in self.calls if name == operation]

    async def request(self, query, variables=None):
        name = operation_name(query)
        variables = variables or {}
        self.calls.append((name, variables))
        queue = self.responses[name]
        if not queue:
            raise AssertionError(f"No scripted response for {name}")
        body = queue.popleft() if len(queue) > 1 else queue[0]
        if isinstance(body, Exception):
            raise body
        if callable(body):
            body = body(variables)
        return body

    async def execute(self, query, variables=None):
        body = await self.request(query, variables)
        if body.get("errors"):
            raise CatalogError.from_errors(body["errors"])
        return body.get("data") or {}

    async def close(self):
        self.closed = True


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    run_migrations(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def catalog():
    return FakeCatalog()
