import time
from threading import Lock
from buildkitemetrics.graphql import (
    BUILD_STATES_QUERY,
    DecodeError,
    GraphQLClient,
    ScrapeError,
    build_stats_query,
)
from buildkitemetrics.logger import log
from buildkitemetrics.model import BuildStat, PipelineStats
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from typing import Any, Dict, Iterator, List, Union

NAMESPACE = "buildkite"
SLUG_KEY = "slug"


def discover_build_states(client: GraphQLClient) -> Union[List[str], ScrapeError]:
    """Return the names of all members of the BuildStates enum, e.g. ["PASSED", "FAILED"]."""
    try:
        data = client.execute(BUILD_STATES_QUERY)
        build_states = data.get("__type")
        if not isinstance(build_states, dict):
            raise DecodeError("Type BuildStates not found in schema")
        states = []
        for value in build_states.get("enumValues") or []:
            name = value["name"]
            if not isinstance(name, str):
                raise DecodeError(f"Invalid build state name {name!r}")
            states.append(name)
        return states
    except ScrapeError as e:
        return e
    except (KeyError, TypeError) as e:
        return DecodeError(f"Unexpected build states response: {e!r}")


def pipeline_stats_from_node(node: Dict[str, Any]) -> PipelineStats:
    """Split a pipeline node into its slug and one BuildStat per state alias.

    >>> pipeline_stats_from_node({"slug": "web", "passed": {"count": 5}})
    PipelineStats(slug='web', stats=[BuildStat(state='passed', count=5)])
    """
    pipeline = PipelineStats()
    for key, value in node.items():
        if key == SLUG_KEY:
            if not isinstance(value, str):
                raise DecodeError(f"Invalid pipeline slug {value!r}")
            pipeline.slug = value
        else:
            count = value["count"]
            if not isinstance(count, int) or isinstance(count, bool) or count < 0:
                raise DecodeError(f"Invalid build count {count!r} for state {key}")
            pipeline.stats.append(BuildStat(state=key, count=count))
    return pipeline


def fetch_pipeline_stats(
    client: GraphQLClient, organization: str, states: List[str]
) -> Union[List[PipelineStats], ScrapeError]:
    """Return the build count per state for the first page of pipelines of `organization`."""
    try:
        data = client.execute(build_stats_query(organization, states))
        org = data.get("organization")
        if not isinstance(org, dict):
            raise DecodeError(f"Organization {organization} not found")
        pipelines = org["pipelines"]
        page_info = pipelines.get("pageInfo") or {}
        if page_info.get("hasNextPage"):
            log.warning(
                f"Organization {organization} has {pipelines.get('count')} pipelines,"
                " only the first page is exported"
            )
        return [pipeline_stats_from_node(edge["node"]) for edge in pipelines["edges"]]
    except ScrapeError as e:
        return e
    except (KeyError, TypeError, AttributeError) as e:
        return DecodeError(f"Unexpected build stats response: {e!r}")


class Scraper:
    """A Prometheus compatible Collector exporting Buildkite build counts"""

    def __init__(self, client: GraphQLClient, organization: str, namespace: str = NAMESPACE) -> None:
        self.client = client
        self.organization = organization
        self.namespace = namespace
        self.scrapes_total = 0
        self.scrape_errors_total = 0
        self._counter_lock = Lock()

    def builds_metric(self) -> GaugeMetricFamily:
        return GaugeMetricFamily(
            f"{self.namespace}_builds_total",
            "Total number of buildkite builds",
            labels=("state", "pipeline"),
        )

    def counter_metrics(self, with_values: bool = True) -> List[CounterMetricFamily]:
        with self._counter_lock:
            scrapes_total, scrape_errors_total = self.scrapes_total, self.scrape_errors_total
        return [
            CounterMetricFamily(
                f"{self.namespace}_scrapes_total",
                "Total number of times Buildkite was scraped for metrics.",
                value=scrapes_total if with_values else None,
            ),
            CounterMetricFamily(
                f"{self.namespace}_scrape_errors_total",
                "Total number of errors while attempting to scrape Buildkite.",
                value=scrape_errors_total if with_values else None,
            ),
        ]

    def describe(self) -> Iterator:
        yield self.builds_metric()
        yield from self.counter_metrics(with_values=False)

    def collect(self) -> Iterator:
        """collect() is being called whenever the metrics endpoint is requested"""
        builds = self.builds_metric()
        for pipeline in self.scrape():
            for stat in pipeline.stats:
                builds.add_metric((stat.state, pipeline.slug), stat.count)
        yield builds
        yield from self.counter_metrics()

    def fetch(self) -> Union[List[PipelineStats], ScrapeError]:
        states = discover_build_states(self.client)
        if isinstance(states, ScrapeError):
            return states
        log.debug(f"Discovered build states {', '.join(states)}")
        return fetch_pipeline_stats(self.client, self.organization, states)

    def scrape(self) -> List[PipelineStats]:
        with self._counter_lock:
            self.scrapes_total += 1
        start_time = time.time()
        try:
            result = self.fetch()
        except Exception as e:
            log.exception(f"Failed to scrape Buildkite organization {self.organization}: {e}")
            result = None
        else:
            if isinstance(result, ScrapeError):
                log.error(f"Failed to scrape Buildkite organization {self.organization}: {result}")
                result = None
        if result is None:
            with self._counter_lock:
                self.scrape_errors_total += 1
            return []
        run_time = time.time() - start_time
        log.debug(f"Scraped {len(result)} pipelines in {run_time:.2f} seconds")
        return result
