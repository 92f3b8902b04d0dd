import concurrent.futures
import gc
import json
import uuid
from unittest.mock import MagicMock

import pytest

from feed_cache.local_loader import LoadFeedResult
from feed_cache.models import FeedItem
from feed_cache.remote import (
    ConnectivityError,
    HTTPResponse,
    InvalidDataError,
    RemoteFeedLoader,
    RequestsHTTPClient,
    parse_feed,
)

FEED_URL = "https://feed.example.com/feed.json"


class HTTPClientSpy:
    def __init__(self):
        self.requested_urls = []
        self._futures = []

    def get(self, url):
        future = concurrent.futures.Future()
        self.requested_urls.append(url)
        self._futures.append(future)
        return future

    def complete_with_error(self, error, index=0):
        self._futures[index].set_exception(error)

    def complete_with(self, status_code, content, index=0):
        self._futures[index].set_result(
            HTTPResponse(status_code=status_code, content=content, url=FEED_URL)
        )


def _payload(*items):
    return json.dumps({"items": list(items)}).encode("utf-8")


def _load(loader, complete):
    received = []
    loader.load(received.append)
    complete()
    assert len(received) == 1
    return received[0]


@pytest.fixture
def client():
    return HTTPClientSpy()


def test_init_does_not_request_data(client):
    RemoteFeedLoader(FEED_URL, client)

    assert client.requested_urls == []


def test_load_requests_data_from_url(client):
    RemoteFeedLoader(FEED_URL, client).load(lambda result: None)

    assert client.requested_urls == [FEED_URL]


def test_load_delivers_connectivity_error_on_client_error(client):
    loader = RemoteFeedLoader(FEED_URL, client)
    cause = OSError("offline")

    result = _load(loader, lambda: client.complete_with_error(cause))

    assert isinstance(result.error, ConnectivityError)
    assert result.error.__cause__ is cause


@pytest.mark.parametrize("status_code", [199, 201, 300, 400, 500])
def test_load_delivers_invalid_data_on_non_200_response(client, status_code):
    loader = RemoteFeedLoader(FEED_URL, client)

    result = _load(loader, lambda: client.complete_with(status_code, _payload()))

    assert isinstance(result.error, InvalidDataError)


@pytest.mark.parametrize(
    "content",
    [
        b"not json",
        b"[]",
        b'{"entries": []}',
        b'{"items": [42]}',
        b'{"items": [{"id": "nope", "image": "https://x"}]}',
        b'{"items": [{"id": "8c5d4e8e-6c4a-4b3f-9d0e-1234567890ab"}]}',
    ],
)
def test_load_delivers_invalid_data_on_malformed_payload(client, content):
    loader = RemoteFeedLoader(FEED_URL, client)

    result = _load(loader, lambda: client.complete_with(200, content))

    assert isinstance(result.error, InvalidDataError)


def test_load_delivers_no_items_on_empty_list(client):
    loader = RemoteFeedLoader(FEED_URL, client)

    result = _load(loader, lambda: client.complete_with(200, _payload()))

    assert result == LoadFeedResult.success([])


def test_load_delivers_items_on_valid_response(client):
    first = FeedItem(id=uuid.uuid4(), url="https://a-url.com")
    second = FeedItem(
        id=uuid.uuid4(),
        url="https://another-url.com",
        description="a description",
        location="a location",
    )
    content = _payload(
        {"id": str(first.id), "image": first.url},
        {
            "id": str(second.id),
            "description": second.description,
            "location": second.location,
            "image": second.url,
        },
    )
    loader = RemoteFeedLoader(FEED_URL, client)

    result = _load(loader, lambda: client.complete_with(200, content))

    assert result == LoadFeedResult.success([first, second])


def test_load_does_not_deliver_result_after_loader_is_released(client):
    loader = RemoteFeedLoader(FEED_URL, client)
    received = []

    loader.load(received.append)
    del loader
    gc.collect()
    client.complete_with(200, _payload())

    assert received == []


def test_parse_feed_rejects_missing_image():
    response = HTTPResponse(
        status_code=200,
        content=_payload({"id": str(uuid.uuid4()), "image": ""}),
        url=FEED_URL,
    )

    with pytest.raises(InvalidDataError):
        parse_feed(response)


def test_requests_client_performs_get_with_timeout():
    session = MagicMock()
    session.get.return_value.status_code = 200
    session.get.return_value.content = b"data"
    session.get.return_value.url = FEED_URL

    client = RequestsHTTPClient(timeout=3.5, session=session)
    try:
        response = client.get(FEED_URL).result(timeout=5)
    finally:
        client.close()

    session.get.assert_called_once_with(FEED_URL, timeout=3.5)
    assert response == HTTPResponse(status_code=200, content=b"data", url=FEED_URL)
    session.close.assert_called_once()


def test_requests_client_uses_empty_content_when_missing():
    session = MagicMock()
    session.get.return_value.status_code = 204
    session.get.return_value.content = None
    session.get.return_value.url = FEED_URL

    client = RequestsHTTPClient(session=session)
    try:
        response = client.get(FEED_URL).result(timeout=5)
    finally:
        client.close()

    assert response.content == b""
    assert response.status_code == 204


def test_requests_client_surfaces_transport_errors():
    session = MagicMock()
    session.get.side_effect = OSError("connection reset")

    client = RequestsHTTPClient(session=session)
    try:
        with pytest.raises(OSError, match="connection reset"):
            client.get(FEED_URL).result(timeout=5)
    finally:
        client.close()


@pytest.mark.parametrize(
    "extra",
    [{"description": 5}, {"location": ["Berlin"]}, {"description": {"text": "x"}}],
)
def test_parse_feed_rejects_non_string_optional_fields(extra):
    raw = {"id": str(uuid.uuid4()), "image": "https://x"}
    raw.update(extra)
    response = HTTPResponse(status_code=200, content=_payload(raw), url=FEED_URL)

    with pytest.raises(InvalidDataError):
        parse_feed(response)


def test_parse_feed_accepts_null_optional_fields():
    item_id = uuid.uuid4()
    raw = {"id": str(item_id), "image": "https://x", "description": None, "location": None}
    response = HTTPResponse(status_code=200, content=_payload(raw), url=FEED_URL)

    assert parse_feed(response) == [FeedItem(id=item_id, url="https://x")]
