"""
dgrid - Container Actions Module
-----------
Restart, kill, remove and docker compose operations triggered from the
log view. Every action runs off the control loop and reports back with an
ActionFinished event; compose output is forwarded line by line.
"""
import concurrent.futures
import logging

from dgrid.core.docker_client import ActionError
from dgrid.core.events import ActionFinished, ActionOutput, BulkActionFinished

logger = logging.getLogger(__name__)

RESTART = 'restart'
KILL = 'kill'
REMOVE = 'remove'
COMPOSE_UP = 'compose_up'
COMPOSE_DOWN = 'compose_down'
COMPOSE_DOWN_UP = 'compose_down_up'
COMPOSE_BUILD_UP = 'compose_build_up'

ACTION_LABELS = {
    RESTART: "Restart",
    KILL: "Kill",
    REMOVE: "Remove",
    COMPOSE_UP: "Compose up",
    COMPOSE_DOWN: "Compose down",
    COMPOSE_DOWN_UP: "Compose down/up",
    COMPOSE_BUILD_UP: "Compose build/up",
}

# Simultaneous docker operations for bulk actions
BULK_PARALLELISM = 3


def execute_action(client, container, action, on_output=None, cancel=None):
    """Execute a container action, raises ActionError on failure.

    Compose commands are terminated once `cancel` is set.
    """
    if action == RESTART:
        client.restart(container.id)
    elif action == KILL:
        if not container.running:
            raise ActionError(f"{container.name} is not running")
        client.kill(container.id)
    elif action == REMOVE:
        client.remove(container.id)
    elif action == COMPOSE_UP:
        client.compose_up(container, on_output, cancel)
    elif action == COMPOSE_DOWN:
        client.compose_down(container, on_output, cancel)
    elif action == COMPOSE_DOWN_UP:
        client.compose_down_up(container, on_output, cancel)
    elif action == COMPOSE_BUILD_UP:
        client.compose_build_up(container, on_output, cancel)
    else:
        raise ActionError(f"unknown action {action!r}")


def action_command(client, pane_id, container, action, post, cancel=None):
    """Build a command for EventLoop.submit that runs one action.

    Compose output is posted as ActionOutput while the command runs.
    """
    def forward(stream, text):
        post(ActionOutput(pane_id, stream, text))

    def command():
        logger.info("%s %s", ACTION_LABELS.get(action, action), container.name)
        try:
            execute_action(client, container, action, forward, cancel)
        except ActionError as e:
            logger.warning("%s %s failed: %s", ACTION_LABELS.get(action, action), container.name, e)
            return ActionFinished(pane_id, action, str(e))
        return ActionFinished(pane_id, action, None)

    return command


def run_bulk(client, containers, action, max_parallel=BULK_PARALLELISM):
    """Run an action on many containers, at most max_parallel at a time.

    Failures are counted, never raised. Returns (succeeded, failed).
    """
    succeeded = 0
    failed = 0
    if not containers:
        return succeeded, failed
    with concurrent.futures.ThreadPoolExecutor(max_workers=max_parallel) as pool:
        futures = {
            pool.submit(execute_action, client, container, action): container
            for container in containers
        }
        for future in concurrent.futures.as_completed(futures):
            container = futures[future]
            try:
                future.result()
                succeeded += 1
            except ActionError as e:
                logger.warning("bulk %s of %s failed: %s", action, container.name, e)
                failed += 1
            except Exception:
                logger.exception("bulk %s of %s crashed", action, container.name)
                failed += 1
    return succeeded, failed


def bulk_command(client, containers, action, max_parallel=BULK_PARALLELISM):
    def command():
        succeeded, failed = run_bulk(client, containers, action, max_parallel)
        return BulkActionFinished(action, succeeded, failed)
    return command
