"""
Entry point: bootstrap traffic control and follow container events.
"""
import argparse
import logging
import sys
import threading
from typing import List, Optional

import docker
import uvicorn
from fastapi import FastAPI

from . import __version__
from .api.routes import router
from .config import Settings, settings
from .errors import DaemonUnavailable, ShaperError
from .services.container_inventory import DOCKER_ERRORS, ContainerInventory
from .services.interface_resolver import InterfaceResolver
from .services.reflector_manager import ReflectorManager
from .services.state_store import NamespaceLinker, ReflectorStore
from .services.sync_service import LifecycleSynchronizer
from .services.traffic_shaper import TrafficShaper
from .utils.command import CommandExecutor

logger = logging.getLogger(__name__)


def create_app(synchronizer: LifecycleSynchronizer, store: ReflectorStore) -> FastAPI:
    """Read-only status API"""
    app = FastAPI(
        title="tcshaper",
        description="Per-container traffic control status",
        version=__version__
    )
    app.state.synchronizer = synchronizer
    app.state.store = store
    app.include_router(router, prefix="/api", tags=["api"])

    @app.get("/health")
    def health():
        """Health check"""
        return {"status": "healthy"}

    return app


def serve_status_api(app: FastAPI, host: str, port: int) -> threading.Thread:
    config = uvicorn.Config(app, host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="status-api", daemon=True)
    thread.start()
    logger.info("Status API listening on %s:%d", host, port)
    return thread


def build_synchronizer(client: docker.DockerClient, store: ReflectorStore, cfg: Settings) -> LifecycleSynchronizer:
    """Wire the services together."""
    executor = CommandExecutor()
    namespaces = NamespaceLinker(cfg.netns_dir)
    resolver = InterfaceResolver(executor, namespaces, ip_binary=cfg.ip_binary)
    reflectors = ReflectorManager(executor, store, ip_binary=cfg.ip_binary)
    inventory = ContainerInventory(
        client,
        resolver,
        reflectors,
        label_prefix=cfg.label_prefix,
        enabled_value=cfg.enabled_value,
        default_bandwidth=cfg.default_bandwidth
    )
    shaper = TrafficShaper(executor, tc_binary=cfg.tc_binary)
    return LifecycleSynchronizer(
        inventory,
        shaper,
        reflectors,
        namespaces,
        reconnect_delay=cfg.reconnect_delay
    )


def connect_docker(cfg: Settings) -> docker.DockerClient:
    """
    Raises:
        DaemonUnavailable: If the daemon does not answer
    """
    try:
        if cfg.docker_url:
            client = docker.DockerClient(base_url=cfg.docker_url)
        else:
            client = docker.from_env()
        client.ping()
    except DOCKER_ERRORS as e:
        raise DaemonUnavailable(str(e)) from e
    return client


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tcshaper",
        description="Apply tc policy declared in container labels.",
    )
    parser.add_argument(
        "-d", "--debug",
        action="store_true",
        help="Log every command that is run.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def configure_logging(debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.debug)

    try:
        client = connect_docker(settings)
        store = ReflectorStore(settings.database_url)
    except ShaperError as e:
        logger.critical("Startup failed: %s", e)
        return 1

    synchronizer = build_synchronizer(client, store, settings)

    if settings.status_api_enabled:
        serve_status_api(
            create_app(synchronizer, store),
            settings.status_api_host,
            settings.status_api_port
        )

    try:
        synchronizer.run()
    except DaemonUnavailable as e:
        logger.critical("Cannot list containers: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
