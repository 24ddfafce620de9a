"""Small helpers: error normalisation, query strings, merging, image sizing, downloads."""

import asyncio
import base64
import functools
import json
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Iterable, NoReturn
from urllib.parse import parse_qsl, urlencode

import httpx

from imaginify.core.constants import ASPECT_RATIO_OPTIONS, DEFAULT_IMAGE_SIZE
from imaginify.core.exceptions import AppError, ValidationError
from imaginify.core.logging import get_logger

log = get_logger(__name__)


def handle_error(error: object) -> NoReturn:
    """Log the underlying cause and raise a normalized AppError."""
    if isinstance(error, AppError):
        log.error("operation_failed", message=error.message, code=error.code)
        raise error
    if isinstance(error, Exception):
        log.error("operation_failed", message=str(error), error_type=type(error).__name__)
        raise AppError(f"Error: {error}") from error
    log.error("operation_failed", message=repr(error))
    if isinstance(error, str):
        raise AppError(f"Unknown error: {json.dumps(error)}")
    raise AppError(f"Unknown error: {error!r}")


def _shimmer(w: int, h: int) -> str:
    return f"""
<svg width="{w}" height="{h}" version="1.1" xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink">
  <defs>
    <linearGradient id="g">
      <stop stop-color="#7986AC" offset="20%" />
      <stop stop-color="#68769e" offset="50%" />
      <stop stop-color="#7986AC" offset="70%" />
    </linearGradient>
  </defs>
  <rect width="{w}" height="{h}" fill="#7986AC" />
  <rect id="r" width="{w}" height="{h}" fill="url(#g)" />
  <animate xlink:href="#r" attributeName="x" from="-{w}" to="{w}" dur="1s" repeatCount="indefinite"  />
</svg>
"""


# Placeholder shown while a transformed image is loading.
data_url = "data:image/svg+xml;base64," + base64.b64encode(_shimmer(1000, 1000).encode()).decode()


def _parse_query(search_params: str | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(search_params, Mapping):
        return dict(search_params)
    return dict(parse_qsl(search_params.lstrip("?"), keep_blank_values=True))


def form_url_query(path: str, search_params: str | Mapping[str, Any], key: str, value: Any) -> str:
    """Return `path?query` with `key` set to `value`; None values are dropped."""
    params = _parse_query(search_params)
    params[key] = value
    return f"{path}?{urlencode({k: v for k, v in params.items() if v is not None})}"


def remove_keys_from_query(path: str, search_params: str | Mapping[str, Any], keys_to_remove: Iterable[str]) -> str:
    params = _parse_query(search_params)
    for key in keys_to_remove:
        params.pop(key, None)
    return f"{path}?{urlencode({k: v for k, v in params.items() if v is not None})}"


def debounce(func: Callable[..., Any], delay: float) -> Callable[..., None]:
    """Run `func` only after `delay` seconds pass without another call.

    Must be called from inside a running event loop.
    """
    handle: asyncio.TimerHandle | None = None

    def debounced(*args: Any, **kwargs: Any) -> None:
        nonlocal handle
        if handle is not None:
            handle.cancel()
        loop = asyncio.get_running_loop()
        handle = loop.call_later(delay, functools.partial(func, *args, **kwargs))

    return debounced


def deep_merge_objects(obj1: Mapping | None, obj2: Mapping | None) -> Any:
    """Merge two mappings recursively.

    Starts from a copy of `obj2`; any key present in `obj1` overrides it unless
    both sides hold non-empty mappings, which are merged the same way.
    """
    if obj2 is None:
        return obj1
    output = dict(obj2)
    for key, value in (obj1 or {}).items():
        other = obj2.get(key)
        if value and isinstance(value, Mapping) and other and isinstance(other, Mapping):
            output[key] = deep_merge_objects(value, other)
        else:
            output[key] = value
    return output


def _field(image: Any, name: str) -> Any:
    if image is None:
        return None
    if isinstance(image, Mapping):
        return image.get(name)
    return getattr(image, name, None)


def get_image_size(transformation_type: str, image: Any, dimension: str) -> int:
    """Width or height to render `image` at for the given transformation type."""
    if transformation_type == "fill":
        ratio = ASPECT_RATIO_OPTIONS.get(_field(image, "aspect_ratio") or "")
        return (ratio or {}).get(dimension) or DEFAULT_IMAGE_SIZE
    return _field(image, dimension) or DEFAULT_IMAGE_SIZE


async def download(
    url: str,
    filename: str,
    dest_dir: str | Path = ".",
    client: httpx.AsyncClient | None = None,
) -> Path:
    """Fetch `url` and save it as `<filename>.png` in `dest_dir`."""
    if not url:
        raise ValidationError("Resource url not provided! Please provide one")
    name = f"{filename.replace(' ', '_', 1)}.png" if filename else "download.png"
    owns_client = client is None
    client = client or httpx.AsyncClient(follow_redirects=True, timeout=30.0)
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as e:
        handle_error(e)
    finally:
        if owns_client:
            await client.aclose()
    path = Path(dest_dir) / name
    path.write_bytes(response.content)
    log.info("image_downloaded", url=url, path=str(path))
    return path
