import json
from typing import Any, Callable, Dict, Optional, Tuple
from pytest import fixture
from prometheus_client.parser import text_string_to_metric_families
from requests import Response


def make_response(body: Any, status_code: int = 200, raw: Optional[bytes] = None) -> Response:
    response = Response()
    response.status_code = status_code
    response.url = "https://graphql.example.com/v1"
    response._content = raw if raw is not None else json.dumps(body).encode("utf-8")
    response.encoding = "utf-8"
    return response


@fixture
def graphql_response() -> Callable[..., Response]:
    return make_response


@fixture
def build_states_body() -> dict:
    return {"data": {"__type": {"enumValues": [{"name": "PASSED"}, {"name": "FAILED"}]}}}


@fixture
def build_stats_body() -> dict:
    return {
        "data": {
            "organization": {
                "pipelines": {
                    "count": 1,
                    "pageInfo": {"hasNextPage": False, "hasPreviousPage": False},
                    "edges": [{"node": {"slug": "web", "passed": {"count": 5}, "failed": {"count": 2}}}],
                }
            }
        }
    }


def parse_exposition(text: str) -> Dict[Tuple[str, tuple], float]:
    return {
        (sample.name, tuple(sorted(sample.labels.items()))): sample.value
        for family in text_string_to_metric_families(text)
        for sample in family.samples
    }


@fixture
def exposed_samples() -> Callable[[str], Dict[Tuple[str, tuple], float]]:
    return parse_exposition
