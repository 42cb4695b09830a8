"""Shared fixtures and in-process HTTP doubles for the downloader tests."""

import json
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from models import Credentials, DynamicRuleSet
from signer import RequestSigner


class FakeResponse:
    def __init__(self, status_code: int = 200, json_data: Any = None,
                 content: bytes = b"", text: Optional[str] = None, chunks: Optional[List[bytes]] = None):
        self.status_code = status_code
        self._json = json_data
        self.content = content
        self.text = text if text is not None else content.decode("utf-8", "ignore")
        self._chunks = chunks if chunks is not None else ([content] if content else [])

    def json(self):
        if self._json is None:
            raise requests.exceptions.JSONDecodeError("no json", "", 0)
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error", response=self)

    def iter_content(self, chunk_size: int = 1):
        yield from self._chunks

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:
    """Records every request and answers through a handler(method, url, kwargs)."""

    def __init__(self, handler: Callable[[str, str, Dict[str, Any]], FakeResponse]):
        self.handler = handler
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self.headers: Dict[str, str] = {}
        self._lock = threading.Lock()

    def _request(self, method, url, **kwargs):
        with self._lock:
            self.calls.append((method, url, kwargs))
        return self.handler(method, url, kwargs)

    def get(self, url, **kwargs):
        return self._request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._request("POST", url, **kwargs)


def query_of(url: str) -> Dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


def make_post(post_id: int, author_id: int, media_count: int) -> Dict[str, Any]:
    return {
        "id": post_id,
        "author": {"id": author_id},
        "text": f"post {post_id}",
        "media": [
            {
                "id": post_id * 100 + i,
                "type": "photo",
                "full": f"https://cdn.example.com/{author_id}/{post_id * 100 + i}.jpg",
            }
            for i in range(media_count)
        ],
    }


class FakePostsBackend:
    """Serves /users/{id}/posts for a set of users with a fixed number of posts each."""

    def __init__(self, totals: Dict[int, int], media_per_post: int = 2):
        self.totals = totals
        self.media_per_post = media_per_post
        self.page_offsets: Dict[int, List[int]] = {uid: [] for uid in totals}
        self._lock = threading.Lock()

    def posts_for(self, user_id: int, offset: int, limit: int) -> List[Dict[str, Any]]:
        end = min(offset + limit, self.totals[user_id])
        return [make_post(user_id * 10000 + i, user_id, self.media_per_post) for i in range(offset, end)]

    def respond(self, url: str) -> FakeResponse:
        user_id = int(urlparse(url).path.split("/")[-2])
        query = query_of(url)
        if query.get("counters") == "1":
            return FakeResponse(json_data={
                "list": self.posts_for(user_id, 0, 1),
                "hasMore": True,
                "counters": {"postsCount": self.totals[user_id]},
            })
        offset = int(query["offset"])
        with self._lock:
            self.page_offsets[user_id].append(offset)
        return FakeResponse(json_data=self.posts_for(user_id, offset, int(query["limit"])))


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(
        identity_id="123456",
        user_agent="Mozilla/5.0 (X11; Linux x86_64) Firefox/120.0",
        session_token="sess-token",
        client_token="xbc-token",
    )


@pytest.fixture
def rules() -> DynamicRuleSet:
    return DynamicRuleSet.from_dict({
        "static_param": "abcdefStaticParam",
        "checksum_indexes": [0, 5, 11, 39],
        "checksum_constant": 173,
        "format": "25000:{}:{:x}:65a4c1fb",
    })


@pytest.fixture
def signer(credentials, rules) -> RequestSigner:
    return RequestSigner(credentials, rules)


@pytest.fixture
def write_json(tmp_path):
    def _write(name: str, data: Any) -> str:
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)
    return _write
