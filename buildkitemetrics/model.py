from attrs import define, field
from typing import List


@define
class BuildStat:
    """Number of builds of a pipeline in one build state."""

    state: str
    count: int = 0


@define
class PipelineStats:
    """Build counts per state for a single pipeline."""

    slug: str = ""
    stats: List[BuildStat] = field(factory=list)
