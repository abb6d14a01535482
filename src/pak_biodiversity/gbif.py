"""
GBIF occurrence download.

Pages through the public occurrence search API
(https://api.gbif.org/v1/occurrence/search) for one country and flattens the
results to the Darwin Core columns the cleaning filter expects.

The search API serves at most 300 records per page and 100 000 records per
query; larger extracts need the asynchronous download API, which is out of
scope here.
"""

import time
from typing import Any, Dict, List, Optional

import pandas as pd
import requests

API_ENDPOINT = "https://api.gbif.org/v1/occurrence/search"

PAGE_SIZE = 300
MAX_OFFSET = 100_000
MAX_RETRIES = 3
RETRY_DELAY = 5  # seconds
TIMEOUT = 120  # seconds

# Darwin Core fields kept from each search result
OCCURRENCE_FIELDS = [
    "key", "species", "scientificName", "kingdom", "phylum", "class", "order",
    "family", "genus", "decimalLongitude", "decimalLatitude",
    "year", "month", "day", "eventDate", "basisOfRecord", "institutionCode",
    "datasetName", "datasetKey", "countryCode", "coordinateUncertaintyInMeters",
]


class GBIFError(Exception):
    """Raised when the GBIF API cannot be reached or returns garbage."""
    pass


def build_params(
    country: str,
    offset: int = 0,
    limit: int = PAGE_SIZE,
    has_coordinate: bool = True,
) -> Dict[str, Any]:
    """Query parameters for one page of the occurrence search."""
    return {
        "country": country,
        "hasCoordinate": "true" if has_coordinate else "false",
        "offset": offset,
        "limit": min(limit, PAGE_SIZE),
    }


def fetch_page(
    params: Dict[str, Any],
    session: Optional[requests.Session] = None,
    logger=None,
    endpoint: str = API_ENDPOINT,
    max_retries: int = MAX_RETRIES,
    retry_delay: float = RETRY_DELAY,
    timeout: float = TIMEOUT,
) -> Dict[str, Any]:
    """
    Fetch a single page of search results, retrying on request failures.

    Raises:
        GBIFError: If all retries are exhausted or the payload is malformed
    """
    http = session or requests.Session()
    last_error = None

    for attempt in range(max_retries + 1):
        try:
            response = http.get(endpoint, params=params, timeout=timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            last_error = e
            if attempt < max_retries:
                if logger:
                    logger.warning(f"Request failed, retrying in {retry_delay}s... ({e})")
                time.sleep(retry_delay)
            continue

        if not isinstance(payload, dict) or "results" not in payload:
            raise GBIFError(f"Unexpected GBIF response for offset {params.get('offset')}")
        return payload

    raise GBIFError(f"Max retries exceeded: {last_error}")


def fetch_occurrences(
    country: str,
    limit: int = 10_000,
    has_coordinate: bool = True,
    session: Optional[requests.Session] = None,
    logger=None,
    endpoint: str = API_ENDPOINT,
    page_size: int = PAGE_SIZE,
    max_retries: int = MAX_RETRIES,
    retry_delay: float = RETRY_DELAY,
    pause: float = 0.5,
) -> List[Dict[str, Any]]:
    """
    Fetch up to `limit` occurrence records for a country.

    Handles pagination; stops at the API's endOfRecords flag, an empty page,
    the requested limit, or the search API's offset ceiling.

    Returns:
        List of raw result dictionaries
    """
    limit = min(limit, MAX_OFFSET)
    records: List[Dict[str, Any]] = []
    offset = 0
    page_num = 0

    while len(records) < limit:
        page_num += 1
        params = build_params(
            country,
            offset=offset,
            limit=min(page_size, limit - len(records)),
            has_coordinate=has_coordinate,
        )
        if logger:
            logger.info(f"Fetching page {page_num} (offset {offset})...")

        payload = fetch_page(
            params,
            session=session,
            logger=logger,
            endpoint=endpoint,
            max_retries=max_retries,
            retry_delay=retry_delay,
        )
        results = payload.get("results", [])
        if not results:
            break

        records.extend(results)
        offset += len(results)

        if payload.get("endOfRecords", False):
            break
        if pause:
            time.sleep(pause)

    return records[:limit]


def records_to_frame(records: List[Dict[str, Any]]) -> pd.DataFrame:
    """
    Flatten search results to a DataFrame with OCCURRENCE_FIELDS columns.

    Fields missing from a record become NA; extra fields are dropped.
    """
    df = pd.DataFrame.from_records(records)
    return df.reindex(columns=OCCURRENCE_FIELDS)
