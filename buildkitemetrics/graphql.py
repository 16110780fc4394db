import json
import requests
from buildkitemetrics.logger import log, TRACE
from typing import Any, Dict, Iterable

Json = Dict[str, Any]

BUILD_STATES_QUERY = """
{
    __type(name: "BuildStates") {
        enumValues {
            name
        }
    }
}
"""

PIPELINES_PAGE_SIZE = 100


class ScrapeError(Exception):
    pass


class TransportError(ScrapeError):
    """The GraphQL endpoint could not be reached or answered with an error status."""


class DecodeError(ScrapeError):
    """The GraphQL response was not JSON or did not have the expected shape."""


def build_stats_query(organization: str, states: Iterable[str]) -> str:
    """Return the query asking for the build count in each of `states` for every pipeline of `organization`.

    Every state becomes one field aliased by its lower-cased name, e.g.
    `passed: builds(state: PASSED) { count }`.
    """
    states_query = "".join(f"{state.lower()}: builds(state: {state}) {{ count }}\n" for state in states)
    return f"""
query BuildStatsQuery {{
    organization(slug: {json.dumps(organization)}) {{
        pipelines(first: {PIPELINES_PAGE_SIZE}) {{
            count
            pageInfo {{
                hasNextPage
                hasPreviousPage
            }}
            edges {{
                node {{
                    slug
                    {states_query}
                }}
            }}
        }}
    }}
}}
"""


class GraphQLClient:
    def __init__(self, url: str, token: str, timeout: float = 10) -> None:
        self.url = url
        self.token = token
        self.timeout = timeout

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.token}",
        }

    def execute(self, query: str) -> Json:
        """Run `query` and return the `data` object of the response."""
        log.log(TRACE, f"Sending query to {self.url}: {query}")
        try:
            r = requests.post(
                self.url,
                data=json.dumps({"query": query}),
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"Request to {self.url} failed: {e}") from e
        if not r.ok:
            raise TransportError(f"Request to {self.url} failed with status {r.status_code}: {r.text}")

        try:
            body = r.json()
        except (ValueError, RecursionError) as e:
            raise DecodeError(f"Response from {self.url} is not valid JSON: {e}") from e
        if not isinstance(body, dict):
            raise DecodeError(f"Response from {self.url} is not a JSON object")

        data = body.get("data")
        errors = body.get("errors")
        if errors and not data:
            error = errors[0] if isinstance(errors, list) else errors
            message = error.get("message", error) if isinstance(error, dict) else error
            raise DecodeError(f"Query returned errors: {message}")
        if errors:
            log.warning(f"Query returned partial errors: {errors}")
        if not isinstance(data, dict):
            raise DecodeError(f"Response from {self.url} has no data object")
        return data
