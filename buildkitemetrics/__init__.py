"""
Buildkite Prometheus exporter
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Exports Buildkite pipeline build counts in Prometheus format.
:license: Apache 2.0, see LICENSE for more details.
"""

__title__ = "buildkitemetrics"
__description__ = "Exports Buildkite pipeline build counts in Prometheus format."
__license__ = "Apache 2.0"
__version__ = "0.1.0"
