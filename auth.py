import logging
from typing import Optional, Tuple, Callable

from werkzeug.wrappers import Request, Response

from models import User, UserStore

logger = logging.getLogger(__name__)

IDENTITY_ENVIRON_KEY = "davshare.identity"


class Authenticator:
    """身份识别（基于登录文件）"""

    def __init__(self, user_store: UserStore, realm: str = "DavShare"):
        self.user_store = user_store
        self.realm = realm

    def authenticate(self, username: str, password: str) -> Optional[User]:
        """基础认证"""
        return self.user_store.authenticate(username, password)

    def identify(self, credentials: Optional[Tuple[str, str]]) -> Optional[User]:
        if not credentials:
            return None
        username, password = credentials
        return self.authenticate(username, password)

    @staticmethod
    def extract_credentials(environ: dict) -> Optional[Tuple[str, str]]:
        """从 Authorization 头中取出 Basic 认证的用户名与密码"""
        auth = Request(environ).authorization
        if auth is None or auth.type != "basic":
            return None
        if auth.username is None or auth.password is None:
            return None
        return auth.username, auth.password

    def challenge(self) -> Response:
        return Response(
            "Unauthorized",
            status=401,
            headers={"WWW-Authenticate": f'Basic realm="{self.realm}"'},
            mimetype="text/plain",
        )


class AuthGate:
    """
    HTTP 基础认证网关（WSGI 中间件）

    浏览界面与 WebDAV 共用同一个网关和同一份用户表；认证失败时直接返回 401，
    不暴露任何路径是否存在的信息。
    """

    def __init__(self, app: Callable, authenticator: Authenticator):
        self.app = app
        self.authenticator = authenticator

    @classmethod
    def wrap(cls, app: Callable, authenticator: Optional[Authenticator]) -> Callable:
        """未配置登录文件时不做任何包装"""
        if authenticator is None:
            return app
        return cls(app, authenticator)

    def __call__(self, environ, start_response):
        credentials = self.authenticator.extract_credentials(environ)
        user = self.authenticator.identify(credentials)
        if user is None:
            return self.authenticator.challenge()(environ, start_response)

        environ[IDENTITY_ENVIRON_KEY] = user
        return self.app(environ, start_response)


def current_identity(environ: dict) -> Optional[User]:
    return environ.get(IDENTITY_ENVIRON_KEY)
