import json

import httpx
import pytest

from onetask.schemas.user_schema import AccountUpdate
from onetask.schemas.workspace_schema import Project, UserData
from onetask.sync.remote_client import RemoteClient, RemoteRejectedError, RemoteUnavailableError

USER = {
    "id": "u1",
    "name": "Grace Hopper",
    "email": "grace@mailbox.org",
    "createdAt": "2024-01-01T09:00:00+00:00",
}


def client_for(handler):
    return RemoteClient(base_url="http://api.test", timeout=1.5, transport=httpx.MockTransport(handler))


def test_create_account_keeps_token():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"user": USER, "accessToken": "tok-1", "tokenType": "bearer"})

    remote = client_for(handler)
    auth = remote.create_account("Grace Hopper", "grace@mailbox.org", "cobol59")

    assert seen == {
        "path": "/api/users",
        "body": {"name": "Grace Hopper", "email": "grace@mailbox.org", "password": "cobol59"},
    }
    assert auth.user.email == "grace@mailbox.org"
    assert remote.token == "tok-1"


def test_token_is_sent_on_later_calls():
    def handler(request):
        if request.url.path == "/api/auth":
            return httpx.Response(200, json={"user": USER, "accessToken": "tok-2"})
        assert request.headers["Authorization"] == "Bearer tok-2"
        return httpx.Response(200, json={"projects": [], "activeProjectId": None})

    remote = client_for(handler)
    remote.authenticate("grace@mailbox.org", "cobol59")
    assert remote.fetch_user_data() == UserData()


def test_update_account_payload_skips_unset_fields():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"user": {**USER, "profilePicture": None}})

    remote = client_for(handler)
    remote.update_account(AccountUpdate(profile_picture=None))

    assert seen["method"] == "PATCH"
    assert seen["body"] == {"updates": {"profilePicture": None}, "currentPassword": None}


def test_push_user_data_sends_document():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"message": "Data saved successfully"})

    data = UserData(projects=[Project(name="Home")])
    client_for(handler).push_user_data(data)
    assert seen["body"]["projects"][0]["name"] == "Home"
    assert seen["body"]["activeProjectId"] is None


def test_rejection_carries_server_message():
    def handler(request):
        return httpx.Response(409, json={"detail": "An account with this email already exists"})

    with pytest.raises(RemoteRejectedError) as exc_info:
        client_for(handler).create_account("Grace", "grace@mailbox.org", "cobol59")
    assert exc_info.value.status_code == 409
    assert exc_info.value.message == "An account with this email already exists"


@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(503, json={"detail": "down"}),
        lambda request: httpx.Response(200, text="<html>proxy error</html>"),
        lambda request: httpx.Response(200, json={"projects": "oops"}),
    ],
    ids=["server-error", "not-json", "wrong-shape"],
)
def test_unusable_answers_count_as_unavailable(handler):
    with pytest.raises(RemoteUnavailableError):
        client_for(handler).authenticate("grace@mailbox.org", "cobol59")


@pytest.mark.parametrize(
    "error",
    [httpx.ReadTimeout("too slow"), httpx.ConnectError("refused")],
    ids=["timeout", "network"],
)
def test_transport_failures_count_as_unavailable(error):
    def handler(request):
        raise error

    with pytest.raises(RemoteUnavailableError):
        client_for(handler).fetch_user_data()


def test_wrong_shaped_document_counts_as_unavailable():
    def handler(request):
        return httpx.Response(200, json={"projects": "oops"})

    with pytest.raises(RemoteUnavailableError, match="unexpected response"):
        client_for(handler).fetch_user_data()
