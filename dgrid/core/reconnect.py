"""
dgrid - Reconnect Module
-----------
Finds the container that replaced one whose log stream ended.

A compose restart usually creates a brand new container id, so the search
prefers the same compose project and service, then falls back to the
container name. Only running containers qualify.
"""
import logging

from dgrid.core.docker_client import ActionError
from dgrid.core.events import ContainerResolved, ReconnectFailed

logger = logging.getLogger(__name__)

# Delay before each attempt, in seconds
RECONNECT_DELAYS = (1, 2, 3, 5)


def find_replacement(original, containers):
    """Pick the running container that should take over from `original`"""
    if original.compose_project and original.compose_service:
        for container in containers:
            if (container.running
                    and container.compose_project == original.compose_project
                    and container.compose_service == original.compose_service):
                return container
    for container in containers:
        if container.running and container.name == original.name:
            return container
    return None


class ReconnectSupervisor:
    """Retries container resolution on a fixed delay schedule"""

    def __init__(self, client, cancel, delays=RECONNECT_DELAYS):
        self.client = client
        self.cancel = cancel
        self.delays = tuple(delays)

    def resolve(self, pane_id, token, original, delays=None):
        """Blocking, meant to run on the event loop's pool.

        Returns ContainerResolved, ReconnectFailed once every attempt missed,
        or None when the session was cancelled while waiting.
        """
        schedule = self.delays if delays is None else tuple(delays)
        for attempt, delay in enumerate(schedule, 1):
            # wait() returns True as soon as the session is cancelled
            if self.cancel.wait(delay):
                return None
            try:
                containers = self.client.list_containers()
            except ActionError as e:
                logger.debug("reconnect attempt %d for %s: %s", attempt, original.name, e)
                continue
            match = find_replacement(original, containers)
            if match is not None:
                logger.info("pane %s: %s resolved to %s on attempt %d",
                            pane_id, original.name, match.short_id, attempt)
                return ContainerResolved(pane_id, token, match)
            logger.debug("reconnect attempt %d for %s: no running match", attempt, original.name)
        return ReconnectFailed(pane_id, token)
