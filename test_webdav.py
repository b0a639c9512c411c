"""/webdav/ 端点：与浏览界面共用根目录、认证与权限"""

import pytest
from werkzeug.test import Client


def propfind(client, path, **kwargs):
    return client.open(path, method="PROPFIND", headers={"Depth": "1", **kwargs.pop("headers", {})}, **kwargs)


def test_propfind_lists_root(client):
    response = propfind(client, "/webdav/")
    assert response.status_code == 207
    body = response.get_data(as_text=True)
    assert "hello.txt" in body
    assert "docs" in body


def test_get_file(client):
    response = client.get("/webdav/hello.txt")
    assert response.status_code == 200
    assert response.get_data() == b"hello world"


def test_put_creates_file(client, share_root):
    response = client.put("/webdav/new.txt", data=b"via dav")
    assert response.status_code in (200, 201, 204)
    assert (share_root / "new.txt").read_bytes() == b"via dav"


def test_readonly_policy_blocks_writes(make_server, share_root):
    client = Client(make_server(PERMISSION_LEVEL="readonly").wsgi_app)

    assert client.put("/webdav/new.txt", data=b"x").status_code == 403
    assert not (share_root / "new.txt").exists()

    assert client.delete("/webdav/hello.txt").status_code == 403
    assert (share_root / "hello.txt").exists()

    assert propfind(client, "/webdav/").status_code == 207


def test_readwrite_policy_blocks_delete(make_server, share_root):
    client = Client(make_server(PERMISSION_LEVEL="readwrite").wsgi_app)
    assert client.delete("/webdav/hello.txt").status_code == 403
    assert (share_root / "hello.txt").exists()


@pytest.fixture
def auth_client(make_server, logins_file):
    return Client(make_server(LOGINS_FILE=str(logins_file)).wsgi_app)


def test_webdav_requires_credentials(auth_client, auth_headers):
    assert propfind(auth_client, "/webdav/").status_code == 401
    assert propfind(auth_client, "/webdav/", headers=auth_headers("alice", "secret")).status_code == 207


def test_webdav_narrows_per_user(auth_client, auth_headers, share_root):
    response = auth_client.put("/webdav/a.txt", data=b"a", headers=auth_headers("alice", "secret"))
    assert response.status_code == 403
    assert not (share_root / "a.txt").exists()

    response = auth_client.put("/webdav/b.txt", data=b"b", headers=auth_headers("bob", "builder"))
    assert response.status_code in (200, 201, 204)
    assert (share_root / "b.txt").read_bytes() == b"b"


def test_webdav_follows_root_change(client, server, tmp_path):
    other = tmp_path / "other"
    other.mkdir()
    (other / "only-b.txt").write_text("b")

    server.registry.set(str(other))

    assert client.get("/webdav/only-b.txt").get_data() == b"b"
    assert client.get("/webdav/hello.txt").status_code == 404

    client.put("/webdav/written.txt", data=b"w")
    assert (other / "written.txt").read_bytes() == b"w"
