from typing import Any, Dict, Optional

import httpx

from helperkit.core.config import settings
from helperkit.utils.error_handler import GeoLookupError
from helperkit.utils.logger import get_logger

logger = get_logger(__name__)

GEO_FIELDS = (
    "status,message,continent,continentCode,country,countryCode,region,"
    "regionName,city,zip,lat,lon,timezone,offset,currency,isp,org,as,asname,"
    "reverse,mobile,proxy,hosting,query"
)


async def fetch_geo_data(
    ip: str, *, client: Optional[httpx.AsyncClient] = None
) -> Dict[str, Any]:
    """
    Look up geo data for an IP address via ip-api.com.

    Args:
        ip: IPv4/IPv6 address to look up.
        client: Optional shared client; a short-lived one is used otherwise.

    Returns:
        The ip-api payload (country, city, lat/lon, isp, ...).

    Raises:
        GeoLookupError: On transport failure, an empty body, or a non-success status.
    """
    url = f"http://{settings.GEO_API_HOST}/json/{ip}"
    params = {"fields": GEO_FIELDS}
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=settings.GEO_TIMEOUT_SECONDS) as own:
                response = await own.get(url, params=params)
        else:
            response = await client.get(url, params=params)
    except httpx.HTTPError as e:
        logger.warning("Geo lookup request failed", ip=ip, error=str(e))
        raise GeoLookupError(f"Geo lookup request failed: {e}") from e

    if not response.content:
        raise GeoLookupError("No data")
    try:
        payload = response.json()
    except ValueError as e:
        raise GeoLookupError("Geo lookup returned invalid JSON") from e

    if payload.get("status") != "success":
        logger.info("Geo lookup unsuccessful", ip=ip, message=payload.get("message"))
        raise GeoLookupError()
    return payload
