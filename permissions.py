import logging
from typing import NamedTuple, Optional

from models import PermissionLevel, User

logger = logging.getLogger(__name__)

# 能力名称
READ = "read"
UPLOAD = "upload"
MODIFY = "modify"
ADMIN = "admin"


class AuthenticationRequired(Exception):
    """需要认证但未提供有效身份"""


class StaticPolicy(NamedTuple):
    """服务器级静态权限（由 --permlevel 决定）"""
    allow_upload: bool
    allow_modify: bool

    @classmethod
    def from_level(cls, level: str) -> 'StaticPolicy':
        """readonly / readwrite / all；无效值抛出 ValueError"""
        level = PermissionLevel(level)
        if level is PermissionLevel.READONLY:
            return cls(False, False)
        if level is PermissionLevel.READWRITE:
            return cls(True, False)
        return cls(True, True)


class Capabilities(NamedTuple):
    """单个请求的有效能力（读取始终允许）"""
    can_upload: bool
    can_modify: bool
    is_admin: bool = False

    def allows(self, requirement: Optional[str]) -> bool:
        if requirement is None or requirement == READ:
            return True
        if requirement == UPLOAD:
            return self.can_upload
        if requirement == MODIFY:
            return self.can_modify
        if requirement == ADMIN:
            return self.is_admin
        return False


def narrow(level: PermissionLevel, policy: StaticPolicy) -> Capabilities:
    """按用户权限级别收窄静态权限，只会收窄不会放宽"""
    if level is PermissionLevel.READONLY:
        return Capabilities(False, False)
    if level is PermissionLevel.READWRITE:
        return Capabilities(policy.allow_upload, False)
    return Capabilities(policy.allow_upload, policy.allow_modify, is_admin=True)


def evaluate_capabilities(identity: Optional[User], policy: StaticPolicy,
                          auth_required: bool) -> Capabilities:
    """由静态策略与可选身份计算有效能力"""
    if not auth_required:
        return Capabilities(policy.allow_upload, policy.allow_modify)
    if identity is None:
        raise AuthenticationRequired("authentication required")
    return narrow(identity.permission, policy)


class PermissionManager:
    """权限管理器"""

    # WebDAV 方法所需的能力，未列出的方法视为只读
    METHOD_MAP = {
        'PUT': UPLOAD,
        'MKCOL': UPLOAD,
        'COPY': UPLOAD,
        'LOCK': UPLOAD,
        'UNLOCK': UPLOAD,
        'DELETE': MODIFY,
        'MOVE': MODIFY,
        'PROPPATCH': MODIFY,
    }

    def __init__(self, policy: StaticPolicy, auth_required: bool = False):
        self.policy = policy
        self.auth_required = auth_required

    def capabilities(self, identity: Optional[User]) -> Capabilities:
        return evaluate_capabilities(identity, self.policy, self.auth_required)

    def check_method(self, identity: Optional[User], method: str, path: str = "") -> bool:
        """检查 WebDAV 方法权限"""
        try:
            caps = self.capabilities(identity)
        except AuthenticationRequired:
            return False

        requirement = self.METHOD_MAP.get(method.upper(), READ)
        if caps.allows(requirement):
            return True

        username = identity.username if identity else 'Anonymous'
        logger.warning(f"Permission denied: {username} tried to {method} {path}")
        return False
