# WebDAV 文件系统提供者：跟随根目录注册表，并按能力检查 DAV 方法
from wsgidav.fs_dav_provider import FilesystemProvider
from wsgidav.dav_error import DAVError, HTTP_FORBIDDEN
from typing import Optional
import logging

from auth import current_identity
from permissions import PermissionManager
from storage.paths import resolve, PathEscapeError
from storage.registry import RootRegistry

logger = logging.getLogger(__name__)


class RootedFilesystemProvider(FilesystemProvider):
    """根目录可切换、支持权限控制的文件系统提供者"""

    def __init__(self, registry: RootRegistry, permissions: PermissionManager,
                 readonly: bool = False):
        super().__init__(registry.get(), readonly=readonly)
        self.registry = registry
        self.permissions = permissions
        # 在注册表的写锁内同步更新，浏览界面与 WebDAV 始终看到同一个根目录
        registry.subscribe(self._on_root_changed)

    def _on_root_changed(self, new_root: str) -> None:
        self.root_folder_path = new_root

    def _loc_to_file_path(self, path: str, environ: Optional[dict] = None) -> str:
        root = self.registry.snapshot(environ)
        try:
            return resolve(root, path)
        except PathEscapeError:
            logger.warning(f"WebDAV path escapes root: {path}")
            raise DAVError(HTTP_FORBIDDEN, f"Path outside of share: {path}")

    def get_resource_inst(self, path: str, environ: dict):
        """获取资源实例，检查权限"""
        method = environ.get('REQUEST_METHOD', 'GET')
        identity = current_identity(environ)

        if not self.permissions.check_method(identity, method, path):
            raise DAVError(HTTP_FORBIDDEN, f"Permission denied for {method} on {path}")

        return super().get_resource_inst(path, environ)
