"""
Minimal JSON-over-HTTP helper shared by the tide providers and the station
directory loader.

Every failure mode (network error, non-2xx status, timeout, oversized or
undecodable body) surfaces as ProviderUnavailable so callers can fall through
to the next provider.
"""
import http.client
import json
import logging
import socket
import urllib.error
import urllib.request
from typing import Any, Dict, Optional

from .config import MAX_RESPONSE_SIZE
from .exceptions import ProviderUnavailable

logger = logging.getLogger(__name__)

USER_AGENT = 'fishcast-engine/1.0'


def safe_read_response(response, max_size: int = MAX_RESPONSE_SIZE) -> bytes:
    """
    Safely read HTTP response with size limit to prevent memory exhaustion.

    Args:
        response: urllib response object
        max_size: Maximum allowed response size in bytes

    Returns:
        Response body as bytes

    Raises:
        ValueError: If response exceeds size limit
    """
    # Check Content-Length header if available
    content_length = response.headers.get('Content-Length')
    if content_length and int(content_length) > max_size:
        raise ValueError(f"Response too large: {content_length} bytes (max: {max_size})")

    # Read with size limit (read one extra byte to detect overflow)
    data = response.read(max_size + 1)
    if len(data) > max_size:
        raise ValueError(f"Response exceeded size limit of {max_size} bytes")

    return data


def fetch_json(
    url: str,
    timeout: float,
    headers: Optional[Dict[str, str]] = None,
    max_size: int = MAX_RESPONSE_SIZE,
) -> Any:
    """
    GET ``url`` and decode the JSON body.

    Args:
        url: Fully built request URL (query string included)
        timeout: Socket timeout in seconds
        headers: Optional extra request headers
        max_size: Maximum accepted body size in bytes

    Returns:
        Decoded JSON document

    Raises:
        ProviderUnavailable: On any network, HTTP, size or decoding failure
    """
    request_headers = {'User-Agent': USER_AGENT, 'Accept': 'application/json'}
    if headers:
        request_headers.update(headers)
    req = urllib.request.Request(url, headers=request_headers)

    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            body = safe_read_response(response, max_size)
    except urllib.error.HTTPError as e:
        raise ProviderUnavailable(f"HTTP {e.code} from {_host(url)}") from e
    except urllib.error.URLError as e:
        raise ProviderUnavailable(f"Request to {_host(url)} failed: {e.reason}") from e
    except (socket.timeout, TimeoutError) as e:
        raise ProviderUnavailable(f"Request to {_host(url)} timed out") from e
    except ValueError as e:
        raise ProviderUnavailable(str(e)) from e
    except (http.client.HTTPException, OSError) as e:
        # Truncated bodies and connection resets during the read
        raise ProviderUnavailable(f"Request to {_host(url)} failed while reading: {e}") from e

    try:
        return json.loads(body.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProviderUnavailable(f"Invalid JSON from {_host(url)}") from e


def _host(url: str) -> str:
    """Strip the query string so API keys never reach log messages."""
    return url.split('?', 1)[0]
