import threading
import cherrypy
from buildkitemetrics.logger import log
from prometheus_client import CollectorRegistry
from prometheus_client.exposition import generate_latest, CONTENT_TYPE_LATEST

LANDING_PAGE = """<html>
<head><title>Buildkite Exporter</title></head>
<body>
<h1>Buildkite Exporter</h1>
<p><a href='{metrics_path}'>Metrics</a></p>
</body>
</html>
"""


class MetricsApp:
    """Renders all metrics of the registry. Every request runs one scrape."""

    def __init__(self, registry: CollectorRegistry) -> None:
        self.registry = registry

    @cherrypy.expose
    @cherrypy.tools.allow(methods=["GET"])
    def index(self) -> bytes:
        cherrypy.response.headers["Content-Type"] = CONTENT_TYPE_LATEST
        return generate_latest(self.registry)


class WebApp:
    def __init__(self, registry: CollectorRegistry, metrics_path: str = "/metrics") -> None:
        self.metrics_path = "/" + metrics_path.strip("/")
        self.metrics_app = MetricsApp(registry)
        self.config = {"/": {"tools.gzip.on": True}}
        self.metrics_config = {"/": {"tools.gzip.on": True, "tools.trailing_slash.on": False}}

    @cherrypy.expose
    @cherrypy.tools.allow(methods=["GET"])
    def index(self) -> str:
        cherrypy.response.headers["Content-Type"] = "text/html; charset=utf-8"
        return LANDING_PAGE.format(metrics_path=self.metrics_path)

    @cherrypy.expose
    @cherrypy.tools.allow(methods=["GET"])
    def health(self) -> str:
        cherrypy.response.headers["Content-Type"] = "text/plain"
        return "ok\r\n"


class WebServer(threading.Thread):
    def __init__(
        self,
        web_app: WebApp,
        web_host: str = "::",
        web_port: int = 9101,
    ) -> None:
        super().__init__()
        self.name = "webserver"
        self.web_app = web_app
        self.web_host = web_host
        self.web_port = web_port

    @property
    def serving(self) -> bool:
        return cherrypy.engine.state == cherrypy.engine.states.STARTED

    def run(self) -> None:
        # CherryPy always prefixes its log messages with a timestamp.
        # Replace it with a fixed string so the log line does not
        # carry two timestamps.
        cherrypy.config.reset()
        cherrypy._cplogging.LogManager.time = lambda self: "CherryPy"
        cherrypy.engine.unsubscribe("graceful", cherrypy.log.reopen_files)

        cherrypy.tree.mount(self.web_app, "", self.web_app.config)
        cherrypy.tree.mount(self.web_app.metrics_app, self.web_app.metrics_path, self.web_app.metrics_config)
        cherrypy.config.update(
            {
                "global": {
                    "engine.autoreload.on": False,
                    "server.socket_host": self.web_host,
                    "server.socket_port": self.web_port,
                    "log.screen": False,
                    "log.access_file": "",
                    "log.error_file": "",
                    "tools.log_headers.on": False,
                    "tools.encode.on": True,
                    "tools.encode.encoding": "utf-8",
                    "request.show_tracebacks": False,
                    "request.show_mismatched_params": False,
                }
            }
        )
        log.info(f"Listening on {self.web_host}:{self.web_port}, metrics at {self.web_app.metrics_path}")
        cherrypy.engine.start()
        cherrypy.engine.block()

    def shutdown(self) -> None:
        log.debug("Received request to shutdown http server threads")
        cherrypy.engine.exit()
