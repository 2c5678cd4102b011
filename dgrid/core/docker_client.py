"""
dgrid - Docker Client Module
-----------
Everything dgrid asks of the docker daemon: listing containers, opening raw
log streams, restart/kill/remove and docker compose commands.

Docker SDK and HTTP errors are turned into dgrid's own exception types here
so the rest of the program never sees them.
"""
import logging
import subprocess
import threading
from collections import namedtuple

import docker
import requests
import urllib3
from docker.types.daemon import CancellableStream

from dgrid.core.logs import StreamOpenError, StreamReadError
from dgrid.utils.config import ConfigCache

logger = logging.getLogger(__name__)

PROJECT_LABEL = "com.docker.compose.project"
SERVICE_LABEL = "com.docker.compose.service"
CONFIG_FILES_LABEL = "com.docker.compose.project.config_files"
WORKING_DIR_LABEL = "com.docker.compose.project.working_dir"

DOCKER_ERRORS = (docker.errors.DockerException, requests.exceptions.RequestException)
STREAM_ERRORS = DOCKER_ERRORS + (urllib3.exceptions.HTTPError,)

STOP_TIMEOUT = 10  # seconds given to a container before it is killed on restart
COMPOSE_POLL_INTERVAL = 0.1  # seconds between cancellation checks of a compose command
COMPOSE_KILL_TIMEOUT = 5  # seconds a cancelled compose command gets before SIGKILL


class ActionError(Exception):
    """A container or compose operation failed"""


_ContainerFields = namedtuple('Container', [
    'id', 'name', 'state', 'status', 'image',
    'compose_project', 'compose_service', 'config_files', 'working_dir',
])


class Container(_ContainerFields):
    """Snapshot of the container metadata a pane needs"""
    __slots__ = ()

    @property
    def running(self):
        return self.state == 'running'

    @property
    def display_name(self):
        return self.compose_service or self.name

    @property
    def short_id(self):
        return self.id[:12]

    @classmethod
    def from_docker(cls, container):
        """Build from a docker SDK container object"""
        attrs = getattr(container, 'attrs', None) or {}
        labels = getattr(container, 'labels', None) or attrs.get('Config', {}).get('Labels') or {}
        state = attrs.get('State')
        status = state.get('Status', '') if isinstance(state, dict) else ''
        image = attrs.get('Config', {}).get('Image', '')
        files = labels.get(CONFIG_FILES_LABEL, '')
        return cls(
            id=container.id,
            name=container.name.lstrip('/'),
            state=container.status,
            status=status or container.status,
            image=image,
            compose_project=labels.get(PROJECT_LABEL, ''),
            compose_service=labels.get(SERVICE_LABEL, ''),
            config_files=tuple(f for f in files.split(',') if f),
            working_dir=labels.get(WORKING_DIR_LABEL, ''),
        )


class LogStreamHandle:
    """Raw byte stream of one container's logs.

    read() gives the undecoded HTTP body, so multiplexed frames reach
    dgrid's own demultiplexer untouched.
    """

    def __init__(self, response, tty):
        self._response = response
        self._raw = response.raw
        self._canceller = CancellableStream(None, response)
        self.tty = tty

    def read(self, size):
        try:
            return self._raw.read(size)
        except STREAM_ERRORS as e:
            raise StreamReadError(str(e)) from e

    def read1(self, size=-1):
        reader = getattr(self._raw, 'read1', None)
        if reader is None:
            # Older urllib3 blocks in read(n) until n bytes arrive
            return self.read(1)
        try:
            return reader(size)
        except STREAM_ERRORS as e:
            raise StreamReadError(str(e)) from e

    def close(self):
        # Shutting the socket down wakes up a reader blocked in recv
        try:
            self._canceller.close()
        except (docker.errors.DockerException, OSError, AttributeError):
            # No plain socket underneath (ssh transport or already torn down)
            self._response.close()


class DockerClient:
    """Thin wrapper around docker.from_env() used by the viewer"""

    def __init__(self, client=None, config=None):
        self.client = client or docker.from_env()
        self.config = config or ConfigCache()

    @property
    def api(self):
        return self.client.api

    def list_containers(self):
        """All containers, running first then by name"""
        try:
            raw = self.client.containers.list(all=True)
        except DOCKER_ERRORS as e:
            raise ActionError(f"listing containers failed: {e}") from e

        containers = []
        for item in raw:
            try:
                container = Container.from_docker(item)
            except (AttributeError, KeyError, TypeError):
                logger.debug("skipping malformed container %r", item, exc_info=True)
                continue
            if container.compose_project:
                self.config.update_project(
                    container.compose_project, container.config_files, container.working_dir
                )
            containers.append(container)
        return sorted(containers, key=lambda c: (not c.running, c.name.lower()))

    def open_log_stream(self, container_id):
        """Open the raw log stream for a container.

        Running containers are followed from the last few lines, stopped ones
        only return a bounded tail.
        """
        try:
            info = self.api.inspect_container(container_id)
            tty = bool(info.get('Config', {}).get('Tty'))
            running = bool(info.get('State', {}).get('Running'))
            params = {
                'stdout': 1,
                'stderr': 1,
                'timestamps': 1,
                'follow': 1 if running else 0,
                'tail': self.config.get('tail_lines') if running else self.config.get('stopped_tail_lines'),
            }
            url = self.api._url('/containers/{0}/logs', container_id)
            response = self.api._get(url, params=params, stream=True, timeout=None)
            self.api._raise_for_status(response)
        except DOCKER_ERRORS as e:
            raise StreamOpenError(f"cannot stream logs of {container_id[:12]}: {e}") from e
        logger.debug("opened log stream for %s (tty=%s, running=%s)", container_id[:12], tty, running)
        return LogStreamHandle(response, tty)

    def _container(self, container_id):
        return self.client.containers.get(container_id)

    def restart(self, container_id):
        try:
            self._container(container_id).restart(timeout=STOP_TIMEOUT)
        except DOCKER_ERRORS as e:
            raise ActionError(str(e)) from e

    def kill(self, container_id):
        try:
            self._container(container_id).kill()
        except DOCKER_ERRORS as e:
            raise ActionError(str(e)) from e

    def remove(self, container_id):
        try:
            self._container(container_id).remove(force=True)
        except DOCKER_ERRORS as e:
            raise ActionError(str(e)) from e

    def compose_command(self, container, *args):
        """Build the docker compose command line and working dir for a service"""
        if not container.compose_project or not container.compose_service:
            raise ActionError(f"{container.name} is not part of a compose project")
        files = list(container.config_files)
        working_dir = container.working_dir
        if not files or not working_dir:
            known = self.config.project(container.compose_project) or {}
            files = files or known.get('config_files', [])
            working_dir = working_dir or known.get('working_dir', '')
        cmd = ['docker', 'compose']
        for path in files:
            cmd += ['-f', path]
        cmd += ['-p', container.compose_project]
        cmd += list(args)
        cmd.append(container.compose_service)
        return cmd, working_dir or None

    def container_stats(self, container_id):
        """One raw stats sample (`docker stats --no-stream`)"""
        try:
            return self._container(container_id).stats(stream=False)
        except DOCKER_ERRORS as e:
            raise ActionError(str(e)) from e

    def _run_compose(self, container, args, on_output=None, cancel=None):
        """Run one docker compose command, forwarding its output.

        Setting `cancel` terminates the command and raises ActionError.
        """
        cmd, cwd = self.compose_command(container, *args)
        logger.debug("running %s in %s", " ".join(cmd), cwd)
        try:
            process = subprocess.Popen(
                cmd,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors='replace'
            )
        except OSError as e:
            raise ActionError(f"cannot run docker compose: {e}") from e

        def pump(pipe, stream):
            for line in pipe:
                line = line.rstrip('\n')
                if line and on_output is not None:
                    on_output(stream, line)
            pipe.close()

        # Both pipes on helper threads so neither can fill up and stall
        pumps = [
            threading.Thread(target=pump, args=(process.stdout, 'system'), daemon=True),
            threading.Thread(target=pump, args=(process.stderr, 'stderr'), daemon=True),
        ]
        for thread in pumps:
            thread.start()

        if cancel is None:
            code = process.wait()
        else:
            while process.poll() is None:
                if cancel.wait(COMPOSE_POLL_INTERVAL):
                    self._terminate(process)
                    raise ActionError(f"docker compose {args[0]} cancelled")
            code = process.returncode
        for thread in pumps:
            thread.join(COMPOSE_KILL_TIMEOUT)
        if code != 0:
            raise ActionError(f"docker compose {args[0]} exited with status {code}")

    @staticmethod
    def _terminate(process):
        process.terminate()
        try:
            process.wait(COMPOSE_KILL_TIMEOUT)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    def compose_up(self, container, on_output=None, cancel=None):
        self._run_compose(container, ['up', '-d'], on_output, cancel)

    def compose_down(self, container, on_output=None, cancel=None):
        self._run_compose(container, ['down'], on_output, cancel)

    def compose_down_up(self, container, on_output=None, cancel=None):
        self.compose_down(container, on_output, cancel)
        self.compose_up(container, on_output, cancel)

    def compose_build_up(self, container, on_output=None, cancel=None):
        self._run_compose(container, ['build', '--no-cache'], on_output, cancel)
        self.compose_up(container, on_output, cancel)

    def close(self):
        """Write pending config changes and drop the docker connection"""
        self.config.flush_if_dirty()
        try:
            self.client.close()
        except DOCKER_ERRORS:
            pass
