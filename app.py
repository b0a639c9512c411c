#!/usr/bin/env python3
"""
DavShare 服务器主程序

同一进程内提供目录浏览界面与 /webdav/ WebDAV 端点，二者共用一个根目录注册表
和一个认证网关。
"""

import os
import sys
import errno
import logging
import argparse
import threading
from logging.handlers import RotatingFileHandler
from typing import Dict, Any, List, Optional, Tuple

import bcrypt
from cheroot import wsgi
from wsgidav.wsgidav_app import WsgiDAVApp

from auth import Authenticator, AuthGate
from config import Config
from models import UserStore
from permissions import PermissionManager, StaticPolicy
from storage.filesystem import RootedFilesystemProvider
from storage.registry import RootRegistry
from web_interface import create_web_app

WEBDAV_PREFIX = "/webdav"

logger = logging.getLogger(__name__)


# 配置日志
def setup_logging(level: str = Config.LOG_LEVEL, log_file: Optional[str] = Config.LOG_FILE):
    """配置日志系统"""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # 控制台日志
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(logging.Formatter(log_format))
    root_logger.addHandler(console_handler)

    # 文件日志
    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
        file_handler.setFormatter(logging.Formatter(log_format))
        root_logger.addHandler(file_handler)

    # 设置第三方库的日志级别
    logging.getLogger('wsgidav').setLevel(logging.WARNING)
    logging.getLogger('cheroot').setLevel(logging.WARNING)


class ListenerBindError(Exception):
    """监听地址无法绑定"""


def parse_listen_address(address: str) -> Tuple[str, int]:
    """host:port、:port 或 [::1]:port"""
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid listen address {address!r}, expected host:port")
    host = host.strip("[]") or "0.0.0.0"
    return host, int(port)


class PrefixDispatcher:
    """按路径前缀把请求分给 WebDAV 或浏览界面"""

    def __init__(self, web_app, webdav_app, prefix: str = WEBDAV_PREFIX):
        self.web_app = web_app
        self.webdav_app = webdav_app
        self.prefix = prefix

    def __call__(self, environ, start_response):
        path = environ.get('PATH_INFO', '')
        if path == self.prefix or path.startswith(self.prefix + '/'):
            return self.webdav_app(environ, start_response)
        return self.web_app(environ, start_response)


class FileShareServer:
    """文件共享服务器"""

    def __init__(self, settings: Optional[Dict[str, Any]] = None):
        self.settings = Config.as_dict()
        self.settings.update(settings or {})

        self.policy = StaticPolicy.from_level(self.settings['PERMISSION_LEVEL'])
        self.registry = RootRegistry(self.settings['ROOT_DIR'])

        self.authenticator = None
        logins_file = self.settings.get('LOGINS_FILE')
        if logins_file:
            user_store = UserStore.load(logins_file)
            self.authenticator = Authenticator(user_store, realm=self.settings['AUTH_REALM'])

        self.permissions = PermissionManager(self.policy, auth_required=self.authenticator is not None)
        self.web_app = None
        self.webdav_app = None
        self.wsgi_app = None
        self.servers: List[wsgi.Server] = []

    def create_webdav_app(self):
        """创建 WebDAV 应用"""
        provider = RootedFilesystemProvider(self.registry, self.permissions)

        config = {
            "provider_mapping": {
                WEBDAV_PREFIX: provider,
            },
            # 认证由 AuthGate 统一处理
            "http_authenticator": {
                "domain_controller": None,
            },
            "simple_dc": {"user_mapping": {"*": True}},
            "verbose": 3 if self.settings.get('VERBOSE') else 1,
            "logging": {
                "enable": False,
            },
            "property_manager": True,
            "lock_storage": True,
        }

        self.webdav_app = WsgiDAVApp(config)
        return self.webdav_app

    def create_web_interface(self):
        """创建浏览界面"""
        self.web_app = create_web_app(
            self.registry,
            self.permissions,
            authenticator=self.authenticator,
            settings=self.settings,
        )
        return self.web_app

    def create_wsgi_app(self):
        """组合完整的 WSGI 应用：AuthGate -> 前缀分发 -> Flask / WsgiDAV"""
        if self.web_app is None:
            self.create_web_interface()
        if self.webdav_app is None:
            self.create_webdav_app()

        dispatcher = PrefixDispatcher(self.web_app, self.webdav_app)
        self.wsgi_app = AuthGate.wrap(dispatcher, self.authenticator)
        return self.wsgi_app

    def bind(self, addresses: List[str]) -> List[wsgi.Server]:
        """绑定所有监听地址；任何一个失败都会关闭已绑定的监听并抛出 ListenerBindError"""
        if self.wsgi_app is None:
            self.create_wsgi_app()

        for address in addresses:
            server = wsgi.Server(
                bind_addr=parse_listen_address(address),
                wsgi_app=self.wsgi_app,
            )
            try:
                server.prepare()
            except OSError as e:
                self.stop()
                if e.errno == errno.EADDRINUSE or "already in use" in str(e).lower():
                    raise ListenerBindError(f"{address} is already in use by another application") from e
                raise ListenerBindError(f"Cannot listen on {address}: {e}") from e
            self.servers.append(server)
        return self.servers

    def serve(self):
        """在各自的线程中运行已绑定的监听，阻塞直到全部结束"""
        threads = []
        for server in self.servers:
            thread = threading.Thread(target=server.serve, daemon=True)
            thread.start()
            threads.append(thread)
        for thread in threads:
            thread.join()

    def stop(self):
        for server in self.servers:
            server.stop()
        self.servers = []

    def log_banner(self):
        logger.info(f"DavShare {self.settings['VERSION']}")
        logger.info(f"Serving: {self.registry.get()}")
        logger.info(f"Permissions: {self.settings['PERMISSION_LEVEL']}")
        if self.authenticator is not None:
            logger.info(f"Auth: {len(self.authenticator.user_store)} users")
        if self.policy.allow_upload:
            logger.info(f"Max upload size: {self.settings['MAX_UPLOAD_MB']}MB")
        for server in self.servers:
            host, port = server.bind_addr[:2]
            if host in ("0.0.0.0", "::", ""):
                host = "localhost"
            logger.info(f"Listening on http://{host}:{port}/ (WebDAV: http://{host}:{port}{WEBDAV_PREFIX}/)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="DavShare - HTTP 文件服务器（目录浏览 + WebDAV）",
        epilog="示例: app.py --listen :8000 --dir /var/www --permlevel all --logins logins.txt",
    )
    parser.add_argument("--listen", action="append", metavar="HOST:PORT",
                        help="监听地址，可重复指定（默认 localhost:8080）")
    parser.add_argument("--dir", default=Config.ROOT_DIR, help="共享目录")
    parser.add_argument("--verbose", action="store_true", default=Config.VERBOSE,
                        help="记录每个 HTTP 请求")
    parser.add_argument("--permlevel", default=Config.PERMISSION_LEVEL,
                        help="权限级别: readonly, readwrite, all")
    parser.add_argument("--maxsize", type=int, default=Config.MAX_UPLOAD_MB,
                        help="单个文件上传上限（MB）")
    parser.add_argument("--logins", default=Config.LOGINS_FILE,
                        help="登录文件（每行 username:password:permission）")
    parser.add_argument("--hash-password", metavar="PASSWORD",
                        help="输出可写入登录文件的 bcrypt 哈希后退出")
    return parser


def main(argv: Optional[List[str]] = None):
    """主函数"""
    args = build_parser().parse_args(argv)

    if args.hash_password:
        print(bcrypt.hashpw(args.hash_password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8'))
        return

    setup_logging()

    if args.permlevel not in ("readonly", "readwrite", "all"):
        logger.error(f"Invalid --permlevel {args.permlevel!r}. Valid: readonly, readwrite, all")
        sys.exit(2)

    settings = {
        'ROOT_DIR': os.path.abspath(args.dir),
        'LISTEN': args.listen or Config.LISTEN,
        'VERBOSE': args.verbose,
        'PERMISSION_LEVEL': args.permlevel,
        'MAX_UPLOAD_MB': args.maxsize,
        'LOGINS_FILE': args.logins,
    }

    try:
        server = FileShareServer(settings)
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)

    try:
        server.bind(settings['LISTEN'])
    except (ListenerBindError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)

    server.log_banner()
    try:
        server.serve()
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down...")
    finally:
        server.stop()


if __name__ == "__main__":
    main()
