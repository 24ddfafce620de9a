import asyncio
import base64

import httpx
import pytest

from imaginify.core.exceptions import AppError, NotFoundError, ValidationError
from imaginify.core.result import Result
from imaginify.core.utils import (
    data_url,
    debounce,
    deep_merge_objects,
    download,
    form_url_query,
    get_image_size,
    handle_error,
    remove_keys_from_query,
)


def test_deep_merge_first_object_wins_and_nested_maps_merge():
    obj1 = {"a": 1, "nested": {"x": 1}}
    obj2 = {"a": 2, "b": 3, "nested": {"x": 2, "y": 2}}
    assert deep_merge_objects(obj1, obj2) == {"a": 1, "b": 3, "nested": {"x": 1, "y": 2}}
    assert obj2 == {"a": 2, "b": 3, "nested": {"x": 2, "y": 2}}


def test_deep_merge_missing_sides():
    assert deep_merge_objects({"a": 1}, None) == {"a": 1}
    assert deep_merge_objects(None, {"b": 2}) == {"b": 2}


def test_deep_merge_empty_mapping_replaces():
    assert deep_merge_objects({"n": {}}, {"n": {"x": 1}}) == {"n": {}}


def test_form_url_query_sets_key():
    assert form_url_query("/", "page=2&query=cat", "page", 3) == "/?page=3&query=cat"
    assert form_url_query("/search", "", "query", "sky") == "/search?query=sky"
    assert form_url_query("/", {"page": "2"}, "query", None) == "/?page=2"


def test_remove_keys_from_query():
    assert remove_keys_from_query("/", "page=2&query=cat&type=fill", ["query"]) == "/?page=2&type=fill"
    assert remove_keys_from_query("/", {"page": "2", "q": None}, ["page"]) == "/?"


@pytest.mark.parametrize(
    "kind,image,dimension,expected",
    [
        ("fill", {"aspect_ratio": "9:16"}, "height", 1778),
        ("fill", {"aspect_ratio": "1:1"}, "width", 1000),
        ("fill", {"aspect_ratio": "2:1"}, "width", 1000),
        ("restore", {"width": 640}, "width", 640),
        ("restore", {}, "height", 1000),
        ("restore", None, "height", 1000),
    ],
)
def test_get_image_size(kind, image, dimension, expected):
    assert get_image_size(kind, image, dimension) == expected


def test_data_url_is_svg_placeholder():
    prefix = "data:image/svg+xml;base64,"
    assert data_url.startswith(prefix)
    svg = base64.b64decode(data_url[len(prefix):]).decode()
    assert 'width="1000"' in svg


def test_handle_error_normalizes():
    with pytest.raises(AppError) as exc_info:
        handle_error(ValueError("boom"))
    assert exc_info.value.message == "Error: boom"

    with pytest.raises(AppError) as exc_info:
        handle_error("boom")
    assert exc_info.value.message == 'Unknown error: "boom"'

    with pytest.raises(NotFoundError):
        handle_error(NotFoundError("User not found"))


def test_result_unwrap():
    assert Result.ok(5).unwrap() == 5
    failed = Result.fail(NotFoundError())
    assert not failed.is_ok
    with pytest.raises(NotFoundError):
        failed.unwrap()


@pytest.mark.asyncio
async def test_debounce_runs_last_call_only():
    calls = []
    debounced = debounce(calls.append, 0.05)
    debounced(1)
    debounced(2)
    debounced(3)
    await asyncio.sleep(0.2)
    assert calls == [3]


@pytest.mark.asyncio
async def test_download_saves_png(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"\x89PNG-bytes")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        path = await download("https://img.example.com/a.png", "my cat", tmp_path, client=client)
    assert path == tmp_path / "my_cat.png"
    assert path.read_bytes() == b"\x89PNG-bytes"


@pytest.mark.asyncio
async def test_download_errors(tmp_path):
    with pytest.raises(ValidationError):
        await download("", "x", tmp_path)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(AppError):
            await download("https://img.example.com/missing.png", "x", tmp_path, client=client)
    assert list(tmp_path.iterdir()) == []
