# ============================================================================
# Gift Fund Orchestrator v1.0.0
# Nonprofit Directory Client - ProPublica Nonprofit Explorer
# ============================================================================
#
# Reliability Level: READ-ONLY
# Purpose: Paginated nonprofit search used to pick donation targets
#
# MANDATE:
#   - Read-only, unauthenticated
#   - Exponential backoff on HTTP 429 and 5xx
#   - Responses validated with pydantic before use
#   - Multi-select filtering happens client side
#
# Error Codes:
#   - GIFT-DIR-001: Directory request failed
#
# ============================================================================

import time
import logging
from typing import Dict, List, Optional, Sequence

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from requests.exceptions import (
    ChunkedEncodingError,
    ConnectionError as RequestsConnectionError,
    RequestException,
    Timeout,
)

from giftfund.errors import DirectoryUnavailable
from giftfund.ledger.backoff import ExponentialBackoff

logger = logging.getLogger(__name__)


DEFAULT_DIRECTORY_URL = "https://projects.propublica.org/nonprofits/api/v2"


# ============================================================================
# NTEE Major Groups
# ============================================================================

NTEE_MAJOR_GROUPS: Dict[int, str] = {
    1: "Arts, Culture & Humanities",
    2: "Education",
    3: "Environment and Animals",
    4: "Health",
    5: "Human Services",
    6: "International, Foreign Affairs",
    7: "Public, Societal Benefit",
    8: "Religion Related",
    9: "Mutual/Membership Benefit",
    10: "Unknown, Unclassified",
}

_NTEE_LETTER_GROUPS = {
    "A": 1,
    "B": 2,
    "C": 3, "D": 3,
    "E": 4, "F": 4, "G": 4, "H": 4,
    "I": 5, "J": 5, "K": 5, "L": 5, "M": 5, "N": 5, "O": 5, "P": 5,
    "Q": 6,
    "R": 7, "S": 7, "T": 7, "U": 7, "V": 7, "W": 7,
    "X": 8,
    "Y": 9,
    "Z": 10,
}


def ntee_major_group(ntee_code: Optional[str]) -> Optional[int]:
    """Major group id (1-10) for an NTEE code such as 'B43'."""
    if not ntee_code:
        return None
    return _NTEE_LETTER_GROUPS.get(ntee_code.strip()[:1].upper())


# ============================================================================
# Response Models
# ============================================================================

class Organization(BaseModel):
    """One nonprofit from a directory search."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    ein: int
    strein: Optional[str] = None
    name: str
    sub_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    ntee_code: Optional[str] = None

    @field_validator("ntee_code", "state", mode="before")
    @classmethod
    def normalize_code(cls, v):
        if v is None:
            return None
        v = str(v).strip().upper()
        return v or None

    @property
    def major_group(self) -> Optional[int]:
        return ntee_major_group(self.ntee_code)

    @property
    def location(self) -> str:
        return ", ".join(part for part in (self.city, self.state) if part)


class SearchPage(BaseModel):
    """One page of directory results (pages are zero-based)."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    organizations: List[Organization] = Field(default_factory=list)
    total_results: int = 0
    total_pages: int = Field(default=0, alias="num_pages")
    current_page: int = Field(default=0, alias="cur_page")

    @property
    def has_next(self) -> bool:
        return self.current_page + 1 < self.total_pages


# ============================================================================
# Client
# ============================================================================

class NonprofitDirectoryClient:
    """
    Nonprofit Explorer search client.

    Example Usage:
        client = NonprofitDirectoryClient()
        page = client.search("food bank", state="NY", category=5)
        for org in page.organizations:
            print(org.name, org.location)
    """

    DEFAULT_TIMEOUT = 30.0
    MAX_RETRIES = 3

    def __init__(
        self,
        base_url: str = DEFAULT_DIRECTORY_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        backoff: Optional[ExponentialBackoff] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.backoff = backoff or ExponentialBackoff(base_delay=1.0)
        self._session = session or requests.Session()

        logger.info(f"[GIFT-DIR] Client initialized | base_url={self.base_url}")

    def _request_with_retry(self, path: str, params: Dict[str, object]) -> requests.Response:
        """
        GET with exponential backoff on 429/5xx and transport errors.

        Raises:
            DirectoryUnavailable: After max retries, on a client error or on
                any other requests failure
        """
        url = f"{self.base_url}{path}"
        last_error = None

        for attempt in range(self.MAX_RETRIES):
            try:
                response = self._session.get(url, params=params, timeout=self.timeout)
            except (Timeout, RequestsConnectionError, ChunkedEncodingError) as e:
                last_error = str(e)
                delay = self.backoff.get_delay()
                logger.warning(
                    f"[GIFT-DIR] Connection error | attempt={attempt + 1}/{self.MAX_RETRIES} | "
                    f"backoff={delay:.1f}s | error={e}"
                )
                time.sleep(delay)
                continue
            except RequestException as e:
                logger.error(
                    f"[GIFT-DIR-001] Request failed | path={path} | "
                    f"error={type(e).__name__}: {e}"
                )
                raise DirectoryUnavailable(f"Directory request failed: {e}") from e

            if response.status_code == 429 or response.status_code >= 500:
                last_error = f"HTTP {response.status_code}"
                delay = self.backoff.get_delay()
                logger.warning(
                    f"[GIFT-DIR] HTTP {response.status_code} | "
                    f"attempt={attempt + 1}/{self.MAX_RETRIES} | backoff={delay:.1f}s"
                )
                time.sleep(delay)
                continue

            if response.status_code != 200:
                logger.error(
                    f"[GIFT-DIR-001] Directory error | status={response.status_code} | "
                    f"response={response.text[:200]}"
                )
                raise DirectoryUnavailable(
                    f"Directory request failed: HTTP {response.status_code}"
                )

            self.backoff.reset()
            return response

        logger.error(f"[GIFT-DIR-001] Max retries exceeded | path={path} | last_error={last_error}")
        raise DirectoryUnavailable(f"Max retries exceeded: {last_error}")

    def search(
        self,
        query: str = "",
        page: int = 0,
        state: Optional[str] = None,
        category: Optional[int] = None
    ) -> SearchPage:
        """
        Search the directory.

        Args:
            query: Free text (name, city, keywords)
            page: Zero-based page number
            state: Two-letter state code
            category: NTEE major group id (1-10)

        Raises:
            DirectoryUnavailable: On transport failure or invalid response
        """
        if page < 0:
            raise ValueError(f"page must be non-negative, got {page}")
        if category is not None and category not in NTEE_MAJOR_GROUPS:
            raise ValueError(f"category must be an NTEE major group id 1-10, got {category}")

        params: Dict[str, object] = {"page": page}
        if query:
            params["q"] = query
        if state:
            params["state[id]"] = state.upper()
        if category is not None:
            params["ntee[id]"] = category

        response = self._request_with_retry("/search.json", params)

        try:
            result = SearchPage.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"[GIFT-DIR-001] Invalid directory response | error={e}")
            raise DirectoryUnavailable(f"Invalid directory response: {e}") from e

        logger.info(
            f"[GIFT-DIR] Search complete | q={query!r} | page={result.current_page} | "
            f"results={len(result.organizations)}/{result.total_results}"
        )
        return result


def filter_organizations(
    organizations: Sequence[Organization],
    query: str = "",
    states: Sequence[str] = (),
    categories: Sequence[int] = ()
) -> List[Organization]:
    """
    Client-side multi-select filter.

    An empty selection matches everything; selections within one facet are
    OR-ed, facets are AND-ed.
    """
    needle = query.strip().lower()
    wanted_states = {s.strip().upper() for s in states}
    wanted_groups = set(categories)

    def matches(org: Organization) -> bool:
        if needle and needle not in org.name.lower() and needle not in org.location.lower():
            return False
        if wanted_states and org.state not in wanted_states:
            return False
        if wanted_groups and org.major_group not in wanted_groups:
            return False
        return True

    return [org for org in organizations if matches(org)]
