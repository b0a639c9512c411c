"""
pytest 配置与共享 fixture。

每个测试使用临时共享目录；server 通过完整的 WSGI 栈
（AuthGate -> 前缀分发 -> Flask / WsgiDAV）访问。
"""

import base64

import pytest
from werkzeug.test import Client

from app import FileShareServer


@pytest.fixture
def share_root(tmp_path):
    """临时共享目录：hello.txt、docs/readme.md、docs/notes.txt"""
    root = tmp_path / "share"
    root.mkdir()
    (root / "hello.txt").write_text("hello world")
    docs = root / "docs"
    docs.mkdir()
    (docs / "readme.md").write_text("# Title\n\nSome *text*.\n")
    (docs / "notes.txt").write_text("notes")
    return root


@pytest.fixture
def logins_file(tmp_path):
    path = tmp_path / "logins.txt"
    path.write_text(
        "# test accounts\n"
        "alice:secret:readonly\n"
        "carol:pencil:readwrite\n"
        "bob:builder:all\n"
    )
    return path


@pytest.fixture
def make_server(share_root):
    """按需构造服务器；默认 permlevel=all 且不启用认证"""
    def factory(**settings):
        base = {
            'ROOT_DIR': str(share_root),
            'PERMISSION_LEVEL': 'all',
            'LOGINS_FILE': None,
            'VERBOSE': False,
            'ALLOW_REMOTE_CHDIR': False,
            'CORS_ORIGINS': [],
        }
        base.update(settings)
        server = FileShareServer(base)
        server.create_wsgi_app()
        return server
    return factory


@pytest.fixture
def server(make_server):
    return make_server()


@pytest.fixture
def client(server):
    return Client(server.wsgi_app)


@pytest.fixture
def auth_headers():
    def build(username, password):
        token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {token}"}
    return build
