import httpx
import pytest

from onetask.accounts.account_book import AccountError, data_key
from onetask.schemas.user_schema import AccountUpdate
from onetask.schemas.workspace_schema import Project, TaskDraft, UserData
from onetask.storage.kv_store import MemoryStore, StorageError
from onetask.sync.persister import DebouncedPersister
from onetask.sync.remote_client import RemoteClient, RemoteUnavailableError
from onetask.sync.session import SyncSession, local_session

USER = {
    "id": "u1",
    "name": "Grace Hopper",
    "email": "grace@mailbox.org",
    "createdAt": "2024-01-01T09:00:00+00:00",
}


class FailingStore(MemoryStore):
    def save(self, key, value):
        raise StorageError(f"Could not save {key!r}")


def offline_remote():
    def handler(request):
        raise httpx.ConnectError("refused")

    return RemoteClient(base_url="http://api.test", transport=httpx.MockTransport(handler))


def online_remote(data=None):
    pushed = []

    def handler(request):
        if request.url.path in ("/api/users", "/api/auth"):
            return httpx.Response(200, json={"user": USER, "accessToken": "tok"})
        if request.url.path == "/api/data" and request.method == "GET":
            return httpx.Response(200, json=(data or UserData()).to_document())
        if request.url.path == "/api/data":
            pushed.append(request.content)
            return httpx.Response(200, json={"message": "Data saved successfully"})
        if request.url.path == "/api/users/me" and request.method == "PATCH":
            return httpx.Response(403, json={"detail": "The password you entered is incorrect."})
        return httpx.Response(404, json={"detail": "Not Found"})

    remote = RemoteClient(base_url="http://api.test", transport=httpx.MockTransport(handler))
    return remote, pushed


def garbled_remote():
    def handler(request):
        return httpx.Response(200, json={"projects": "oops"})

    return RemoteClient(base_url="http://api.test", transport=httpx.MockTransport(handler))


# ---------- persister ----------
def test_persister_debounces_to_latest_snapshot(scheduler):
    store = MemoryStore()
    persister = DebouncedPersister(store, "data:u1", scheduler=scheduler, delay=0.5)

    persister(UserData(is_sidebar_open=False))
    persister(UserData(projects=[Project(name="Latest")]))

    assert len(scheduler.active) == 1
    assert store.load("data:u1") is None

    scheduler.fire_all()
    assert store.load("data:u1")["projects"][0]["name"] == "Latest"
    assert not persister.dirty


def test_persister_flush_raises_and_keeps_data(scheduler):
    persister = DebouncedPersister(FailingStore(), "data:u1", scheduler=scheduler)
    persister(UserData())

    with pytest.raises(StorageError):
        persister.flush()
    assert persister.dirty


def test_timer_write_failure_is_recorded(scheduler):
    persister = DebouncedPersister(FailingStore(), "data:u1", scheduler=scheduler)
    persister(UserData())
    scheduler.fire_all()
    assert isinstance(persister.last_error, StorageError)
    assert persister.dirty


def test_remote_push_failure_does_not_undo_local_save(scheduler):
    store = MemoryStore()

    def push(data):
        raise RemoteUnavailableError("Remote API timed out")

    persister = DebouncedPersister(store, "data:u1", push=push, scheduler=scheduler)
    persister(UserData(is_sidebar_open=False))
    persister.flush()

    assert store.load("data:u1")["isSidebarOpen"] is False
    assert persister.last_error is None


# ---------- session ----------
def test_offline_sign_up_and_sign_in_use_local_book():
    session = SyncSession(MemoryStore(), remote=offline_remote())

    user = session.sign_up("Grace Hopper", "grace@mailbox.org", "cobol59")
    assert session.offline
    session.sign_out()

    assert session.sign_in("grace@mailbox.org", "cobol59").id == user.id
    with pytest.raises(AccountError):
        session.sign_in("grace@mailbox.org", "fortran")


def test_garbled_remote_answers_fall_back_to_local_book():
    session = SyncSession(MemoryStore(), remote=garbled_remote())

    user = session.sign_up("Grace Hopper", "grace@mailbox.org", "cobol59")
    assert session.offline
    assert session.local.get(user.id).email == "grace@mailbox.org"
    assert session.load_data() == UserData()


def test_remote_rejection_is_not_retried_locally():
    remote, _ = online_remote()
    session = SyncSession(MemoryStore(), remote=remote)
    session.sign_in("grace@mailbox.org", "cobol59")

    with pytest.raises(AccountError, match="incorrect"):
        session.update_account(AccountUpdate(name="Amazing Grace"), current_password="nope")
    assert not session.offline


def test_load_data_mirrors_remote_copy_locally():
    remote_data = UserData(projects=[Project(name="From server")])
    remote, _ = online_remote(remote_data)
    local = MemoryStore()
    session = SyncSession(local, remote=remote)
    session.sign_in("grace@mailbox.org", "cobol59")

    assert session.load_data() == remote_data
    assert local.load(data_key("u1"))["projects"][0]["name"] == "From server"


def test_workspace_changes_are_saved_locally_and_pushed(scheduler, today):
    remote, pushed = online_remote()
    local = MemoryStore()
    session = SyncSession(local, remote=remote)
    session.sign_in("grace@mailbox.org", "cobol59")

    workspace, persister = session.open_workspace(scheduler=scheduler, clock=lambda: today)
    workspace.add_project("Errands")
    workspace.add_task(TaskDraft(title="Post office"))
    scheduler.fire_all()

    saved = local.load(data_key("u1"))
    assert saved["projects"][0]["tasks"][0]["title"] == "Post office"
    assert len(pushed) == 1


def test_offline_session_never_pushes(scheduler, today):
    session = SyncSession(MemoryStore())
    session.sign_up("Grace Hopper", "grace@mailbox.org", "cobol59")

    workspace, persister = session.open_workspace(scheduler=scheduler, clock=lambda: today)
    workspace.add_project("Offline")
    persister.flush()

    assert session.load_data().projects[0].name == "Offline"


def test_operations_need_a_user():
    session = SyncSession(MemoryStore())
    with pytest.raises(AccountError):
        session.load_data()


def test_local_session_keeps_files_in_data_dir(tmp_path):
    session = local_session(tmp_path, api_url="http://api.test")
    session.local.create("Grace Hopper", "grace@mailbox.org", "cobol59")

    assert session.local_store.directory == tmp_path
    assert (tmp_path / "user_grace_mailbox.org.json").exists()
    session.remote.close()
