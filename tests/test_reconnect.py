import threading

from dgrid.core.docker_client import ActionError, Container
from dgrid.core.events import ContainerResolved, ReconnectFailed
from dgrid.core.reconnect import ReconnectSupervisor, find_replacement


def make_container(id, name, state='running', project='', service=''):
    return Container(
        id=id, name=name, state=state, status=state, image='img',
        compose_project=project, compose_service=service, config_files=(), working_dir='',
    )


class FakeClient:
    """Returns one listing per call, the last one repeats"""

    def __init__(self, *listings):
        self.listings = list(listings)
        self.calls = 0

    def list_containers(self):
        self.calls += 1
        listing = self.listings[min(self.calls, len(self.listings)) - 1]
        if isinstance(listing, Exception):
            raise listing
        return listing


ORIGINAL = make_container('old', 'app_web_1', project='app', service='web')


def test_prefers_compose_service_over_name():
    by_name = make_container('2', 'app_web_1')
    by_service = make_container('3', 'app-web-2', project='app', service='web')
    assert find_replacement(ORIGINAL, [by_name, by_service]) == by_service


def test_falls_back_to_name():
    other_service = make_container('2', 'app_db_1', project='app', service='db')
    by_name = make_container('3', 'app_web_1')
    assert find_replacement(ORIGINAL, [other_service, by_name]) == by_name


def test_ignores_stopped_containers():
    stopped = make_container('2', 'app_web_1', state='exited', project='app', service='web')
    assert find_replacement(ORIGINAL, [stopped]) is None


def test_plain_container_matches_by_name_only():
    original = make_container('old', 'worker')
    candidate = make_container('new', 'worker', project='app', service='worker')
    assert find_replacement(original, [candidate]) == candidate
    assert find_replacement(original, [make_container('x', 'other')]) is None


def test_resolves_after_a_few_attempts():
    replacement = make_container('new', 'app_web_1', project='app', service='web')
    client = FakeClient([], [], [replacement])
    supervisor = ReconnectSupervisor(client, threading.Event(), delays=(0, 0, 0, 0))

    result = supervisor.resolve(4, 11, ORIGINAL)

    assert result == ContainerResolved(4, 11, replacement)
    assert client.calls == 3


def test_gives_up_after_schedule():
    client = FakeClient([])
    supervisor = ReconnectSupervisor(client, threading.Event(), delays=(0, 0, 0, 0))
    assert supervisor.resolve(4, 11, ORIGINAL) == ReconnectFailed(4, 11)
    assert client.calls == 4


def test_listing_errors_count_as_misses():
    replacement = make_container('new', 'app_web_1', project='app', service='web')
    client = FakeClient(ActionError("daemon busy"), [replacement])
    supervisor = ReconnectSupervisor(client, threading.Event(), delays=(0, 0))
    assert isinstance(supervisor.resolve(1, 1, ORIGINAL), ContainerResolved)


def test_cancel_stops_waiting():
    cancel = threading.Event()
    cancel.set()
    client = FakeClient([])
    supervisor = ReconnectSupervisor(client, cancel, delays=(30,))
    assert supervisor.resolve(1, 1, ORIGINAL) is None
    assert client.calls == 0


def test_explicit_schedule_overrides_default():
    client = FakeClient([])
    supervisor = ReconnectSupervisor(client, threading.Event(), delays=(30, 30))
    assert supervisor.resolve(1, 1, ORIGINAL, delays=(0,)) == ReconnectFailed(1, 1)
    assert client.calls == 1
