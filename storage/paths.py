"""
路径解析

两条互不混用的路径：
- 文件系统路径：os.path 拼接，必须通过 is_within 包含检查
- URL 路径：始终使用正斜杠（posixpath），与宿主系统的分隔符无关
"""

import os
import posixpath
from typing import List

from models import Breadcrumb


class PathEscapeError(Exception):
    """路径越出共享根目录"""


def is_within(path: str, root: str) -> bool:
    """path 是否等于 root 或位于其下（/data 不匹配 /database）"""
    base = root.rstrip(os.sep) + os.sep
    return (path + os.sep).startswith(base)


def clean_relative(request_path: str) -> str:
    """纯词法清理请求路径，返回相对路径；'' 表示根目录本身。不访问磁盘。"""
    if "\x00" in request_path:
        raise PathEscapeError("path contains NUL byte")
    path = request_path.replace("\\", "/").lstrip("/")
    if not path:
        return ""
    cleaned = posixpath.normpath(path)
    if cleaned == ".":
        return ""
    if cleaned == ".." or cleaned.startswith("../"):
        raise PathEscapeError(f"path escapes root: {request_path}")
    return cleaned


def resolve(root: str, request_path: str) -> str:
    """把请求路径映射为 root 下的绝对路径，越界时抛出 PathEscapeError"""
    relative = clean_relative(request_path)
    if not relative:
        return root
    candidate = os.path.normpath(os.path.join(root, *relative.split("/")))
    if not is_within(candidate, root):
        raise PathEscapeError(f"path escapes root: {request_path}")
    return candidate


def resolve_child(directory: str, root: str, name: str) -> str:
    """在 directory 下拼接单个名称，并对 root 做包含检查"""
    if "\x00" in name:
        raise PathEscapeError("name contains NUL byte")
    candidate = os.path.normpath(os.path.join(directory, name))
    if not is_within(candidate, root):
        raise PathEscapeError(f"path escapes root: {name}")
    return candidate


def url_join(base: str, name: str, is_dir: bool = False) -> str:
    url = posixpath.join(base or "/", name)
    if is_dir and not url.endswith("/"):
        url += "/"
    return url


def build_breadcrumbs(url_path: str) -> List[Breadcrumb]:
    if url_path in ("", "/"):
        return []
    crumbs = []
    current = ""
    for part in url_path.strip("/").split("/"):
        if not part:
            continue
        current += "/" + part
        crumbs.append(Breadcrumb(part, current))
    return crumbs
