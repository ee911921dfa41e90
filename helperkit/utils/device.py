"""
User-agent parsing for request handlers.
"""

from typing import Any, Dict, Optional

from fastapi import Request
from user_agents import parse

from helperkit.utils.logger import get_logger

logger = get_logger(__name__)


def _device_type(ua: Any) -> Optional[str]:
    if ua.is_tablet:
        return "tablet"
    if ua.is_mobile:
        return "smartphone"
    if ua.is_pc:
        return "desktop"
    return None


def get_device_data(user_agent: str) -> Dict[str, Any]:
    """
    Describe the client, OS and device behind a User-Agent string.

    Crawlers get a `bot` entry and no `client` or `device`. Everything else
    gets `bot: None`.
    """
    ua = parse(user_agent or "")
    os_data = {"name": ua.os.family, "version": ua.os.version_string}

    if ua.is_bot:
        return {
            "client": None,
            "os": os_data,
            "device": None,
            "bot": {"name": ua.browser.family},
        }

    return {
        "client": {
            "type": "browser",
            "name": ua.browser.family,
            "version": ua.browser.version_string,
        },
        "os": os_data,
        "device": {
            "type": _device_type(ua),
            "brand": ua.device.brand,
            "model": ua.device.model,
        },
        "bot": None,
    }


def _client_ip(request: Request) -> Optional[str]:
    ip = request.headers.get("cf-connecting-ip")
    if ip:
        return ip
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # first hop is the original client
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_parsed_user_agent(request: Request) -> Dict[str, Any]:
    """Device data and client IP for an incoming request."""
    header = request.headers.get("user-agent")
    if not header:
        logger.debug("Request has no User-Agent header", path=request.url.path)
    return {
        "userAgent": get_device_data(header) if header else {},
        "ip": _client_ip(request),
    }
