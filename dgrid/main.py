#!/usr/bin/env python3
"""
dgrid - Main Entry Point
-----------
Streams the logs of running docker containers side by side in a
resizable grid of panes.

Usage:
  dgrid              : all running containers
  dgrid web db       : only containers (or compose services) with these names

See dgrid/views/log_view.py for the key bindings.

Dependencies:
  pip install docker
"""
import curses
import logging
import os
import sys

import docker

from dgrid.core.docker_client import ActionError, DockerClient
from dgrid.utils import debug
from dgrid.utils.config import ConfigCache
from dgrid.views.log_view import LogView

logger = logging.getLogger(__name__)


def select_containers(containers, names):
    """Running containers, narrowed down to `names` when given"""
    running = [c for c in containers if c.running]
    if not names:
        return running
    wanted = set(names)
    return [
        c for c in running
        if c.name in wanted or c.compose_service in wanted or c.short_id in wanted
    ]


def main(argv=None):
    names = sys.argv[1:] if argv is None else argv
    # Shorter delay so Esc reacts right away
    os.environ.setdefault('ESCDELAY', '25')

    config = ConfigCache()
    debug.setup_logging(config.get('debug') or debug.env_debug_enabled())

    try:
        client = DockerClient(config=config)
        containers = select_containers(client.list_containers(), names)
    except (docker.errors.DockerException, ActionError) as e:
        print("Error connecting to Docker daemon:", e)
        print("Make sure Docker is running and you have access to /var/run/docker.sock")
        return 1

    if not containers:
        print("No running containers" + (f" matching: {' '.join(names)}" if names else ""))
        client.close()
        return 1

    try:
        curses.wrapper(LogView(client, containers).run)
    except KeyboardInterrupt:
        # Handle Ctrl+C gracefully
        pass
    except Exception as e:
        logger.exception("dgrid crashed")
        print(f"Unexpected error: {e}")
        print("If the screen isn't restoring properly, try: reset")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
