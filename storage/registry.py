"""
共享根目录注册表

进程内唯一的可变状态。读取（每个请求一次）与切换（管理操作）通过
wsgidav 的读写锁同步，锁只在快照或替换期间持有，从不跨越文件 I/O。
"""

import os
import logging
from typing import Callable, List, Optional

from wsgidav.rw_lock import ReadWriteLock

logger = logging.getLogger(__name__)

ROOT_ENVIRON_KEY = "davshare.root"


class InvalidRootError(Exception):
    """新的根目录不存在或不是目录"""


class RootRegistry:
    """当前共享根目录"""

    def __init__(self, root: str):
        root = os.path.abspath(root)
        if not os.path.isdir(root):
            raise InvalidRootError(f"Directory does not exist: {root}")
        self._root = root
        self._lock = ReadWriteLock()
        self._listeners: List[Callable[[str], None]] = []

    def get(self) -> str:
        self._lock.acquire_read()
        try:
            return self._root
        finally:
            self._lock.release()

    def snapshot(self, environ: Optional[dict]) -> str:
        """每个请求只读取一次根目录，之后的解析都使用该快照"""
        if environ is None:
            return self.get()
        root = environ.get(ROOT_ENVIRON_KEY)
        if root is None:
            root = environ[ROOT_ENVIRON_KEY] = self.get()
        return root

    def subscribe(self, listener: Callable[[str], None]) -> None:
        """注册根目录切换回调；回调在写锁内执行，与切换同属一个临界区"""
        self._lock.acquire_write()
        try:
            self._listeners.append(listener)
        finally:
            self._lock.release()

    def set(self, new_root: str) -> str:
        """切换根目录；校验失败时保留原根目录并抛出 InvalidRootError"""
        new_root = os.path.abspath(new_root)
        # 校验在加锁之前完成
        if not os.path.isdir(new_root):
            raise InvalidRootError(f"Directory does not exist: {new_root}")

        self._lock.acquire_write()
        try:
            old_root = self._root
            self._root = new_root
            for listener in self._listeners:
                listener(new_root)
        finally:
            self._lock.release()

        logger.info(f"Served root changed: {old_root} -> {new_root}")
        return new_root
