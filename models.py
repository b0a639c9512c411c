import hmac
import logging
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict

import bcrypt

logger = logging.getLogger(__name__)

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


class PermissionLevel(Enum):
    """用户权限级别"""
    READONLY = "readonly"
    READWRITE = "readwrite"
    ALL = "all"


class User:
    """用户模型（登录文件中的一行）"""

    def __init__(self, username: str, password: str, permission: PermissionLevel):
        self.username = username
        self.password = password
        self.permission = permission

    @property
    def is_admin(self) -> bool:
        return self.permission is PermissionLevel.ALL

    def check_password(self, password: str) -> bool:
        """校验密码；支持 bcrypt 哈希与明文（常量时间比较）"""
        if self.password.startswith(BCRYPT_PREFIXES):
            try:
                return bcrypt.checkpw(password.encode('utf-8'), self.password.encode('utf-8'))
            except ValueError:
                logger.warning(f"Malformed bcrypt hash for user: {self.username}")
                return False
        return hmac.compare_digest(password.encode('utf-8'), self.password.encode('utf-8'))

    def __repr__(self):
        return f"User({self.username!r}, {self.permission.value})"


class UserStore:
    """用户表，启动时从登录文件一次性加载，之后只读"""

    def __init__(self, users: Optional[Dict[str, User]] = None):
        self._users = dict(users or {})

    def __len__(self):
        return len(self._users)

    def __contains__(self, username):
        return username in self._users

    @classmethod
    def parse(cls, text: str) -> 'UserStore':
        """解析 username:password:permission 格式；空行与 # 注释忽略，格式错误的行跳过"""
        users = {}
        for lineno, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            parts = line.split(":")
            if len(parts) != 3:
                logger.warning(f"Skipping login line {lineno}: expected 3 fields, got {len(parts)}")
                continue

            username, password, level = (part.strip() for part in parts)
            try:
                permission = PermissionLevel(level)
            except ValueError:
                logger.warning(f"Skipping login line {lineno}: unknown permission level {level!r}")
                continue

            users[username] = User(username, password, permission)
        return cls(users)

    @classmethod
    def load(cls, file_path: str) -> 'UserStore':
        """从登录文件加载"""
        with open(file_path, 'r', encoding='utf-8') as f:
            store = cls.parse(f.read())
        logger.info(f"Loaded {len(store)} users from {file_path}")
        return store

    def get(self, username: str) -> Optional[User]:
        return self._users.get(username)

    def authenticate(self, username: str, password: str) -> Optional[User]:
        """用户认证：精确匹配用户名，再比较密码"""
        if username is None or password is None:
            return None

        if username not in self:
            logger.warning(f"Authentication failed for unknown user: {username}")
            return None

        user = self.get(username)
        if user.check_password(password):
            return user

        logger.warning(f"Authentication failed for user: {username}")
        return None


class Breadcrumb:
    """面包屑导航项"""

    def __init__(self, name: str, path: str):
        self.name = name
        self.path = path

    def __eq__(self, other):
        return isinstance(other, Breadcrumb) and (self.name, self.path) == (other.name, other.path)

    def __repr__(self):
        return f"Breadcrumb({self.name!r}, {self.path!r})"


class FileEntry:
    """目录列表中的一项，每次请求重新生成"""

    def __init__(self, name: str, url_path: str, is_dir: bool, size: int,
                 modified: float, editable: bool = False):
        self.name = name
        self.url_path = url_path
        self.is_dir = is_dir
        self.size = size
        self.modified = int(modified)
        self.editable = editable

    @property
    def sort_key(self):
        # 目录在前，然后按名称（不区分大小写）
        return (not self.is_dir, self.name.lower())

    @property
    def modified_display(self) -> str:
        return datetime.fromtimestamp(self.modified).strftime("%Y-%m-%d %H:%M:%S")

    def __repr__(self):
        return f"FileEntry({self.name!r}, is_dir={self.is_dir})"


def sort_entries(entries: List[FileEntry]) -> List[FileEntry]:
    return sorted(entries, key=lambda entry: entry.sort_key)
