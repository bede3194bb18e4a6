import logging
import sys
from typing import List, Optional

from flask import Flask, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from werkzeug.exceptions import HTTPException

from .collectors import NodeGauges, build_collectors
from .config import ConfigError, load_settings
from .poller import Poller
from .readiness import ReadinessProbe
from .rpc import RPCClient, RPCConnectError

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "INFO") -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    for h in root_logger.handlers[:]:
        root_logger.removeHandler(h)
    root_logger.addHandler(handler)


def _text(body: str, status: int = 200) -> Response:
    return Response(body, status=status, mimetype="text/plain")


def create_app(registry: CollectorRegistry, probe: ReadinessProbe) -> Flask:
    app = Flask(__name__)

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)

    @app.get("/health/alive")
    def alive() -> Response:
        return _text("OK")

    @app.get("/health/ready")
    def ready() -> Response:
        verdict = probe.check()
        return _text(verdict.body, verdict.status)

    @app.errorhandler(Exception)
    def internal_error(e: Exception):
        # Routing errors (404/405) keep their own responses.
        if isinstance(e, HTTPException):
            return e
        logger.error("Unhandled error serving request", exc_info=e)
        return _text("error: internal", 500)

    return app


def main(argv: Optional[List[str]] = None) -> int:
    try:
        settings = load_settings(argv)
    except ConfigError as e:
        setup_logging()
        logger.error("Invalid configuration: %s", e)
        return 1

    setup_logging(settings.log_level)
    logger.info(
        "Starting: provider=%s listen=%s:%d parity=%s max_remaining_blocks=%d",
        settings.provider_url,
        settings.host,
        settings.port,
        settings.enable_parity,
        settings.max_remaining_blocks,
    )

    try:
        client = RPCClient.dial(settings.provider_url, timeout=settings.rpc_timeout)
    except RPCConnectError as e:
        logger.error("Error connecting: %s", e)
        return 1

    gauges = NodeGauges(enable_block_gap=settings.enable_parity)
    poller = Poller(build_collectors(client, gauges))
    probe = ReadinessProbe(client, threshold=settings.max_remaining_blocks, enable_block_gap=settings.enable_parity)
    app = create_app(gauges.registry, probe)

    poller.start()
    try:
        # Flask's server is threaded; readiness requests never wait on a poll tick.
        app.run(host=settings.host, port=settings.port, debug=False, threaded=True)
    finally:
        poller.stop()
        client.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
