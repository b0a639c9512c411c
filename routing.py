"""
请求分类

每个请求在任何处理函数运行之前，按查询参数与 HTTP 方法归入唯一的操作，
随后由 REQUIRED_CAPABILITY 统一做能力检查。
"""

from enum import Enum
from typing import Mapping, Optional

from permissions import READ, UPLOAD, MODIFY, ADMIN


class Operation(Enum):
    UPLOAD = "upload"
    DELETE = "delete"
    RENAME = "rename"
    MKDIR = "mkdir"
    EDIT = "edit"
    ZIP = "zip"
    ZIP_MULTI = "zipfiles"
    MARKDOWN = "markdown"
    LISTING = "listing"
    FILE = "file"
    CHDIR = "chdir"


REQUIRED_CAPABILITY = {
    Operation.UPLOAD: UPLOAD,
    Operation.DELETE: MODIFY,
    Operation.RENAME: MODIFY,
    Operation.MKDIR: MODIFY,
    Operation.EDIT: MODIFY,
    Operation.ZIP: READ,
    Operation.ZIP_MULTI: READ,
    Operation.MARKDOWN: READ,
    Operation.LISTING: READ,
    Operation.FILE: READ,
    Operation.CHDIR: ADMIN,
}

# 以 JSON {"success": ...} 应答的操作
JSON_OPERATIONS = frozenset({
    Operation.DELETE,
    Operation.RENAME,
    Operation.MKDIR,
    Operation.EDIT,
    Operation.CHDIR,
})

# 仅 POST 有效的查询标记，按优先级排列
_POST_MARKERS = (
    ("upload", Operation.UPLOAD),
    ("delete", Operation.DELETE),
    ("rename", Operation.RENAME),
    ("mkdir", Operation.MKDIR),
    ("edit", Operation.EDIT),
)


def _has(args: Mapping[str, str], key: str) -> bool:
    return bool(args.get(key))


def classify(method: str, args: Mapping[str, str], is_dir: Optional[bool]) -> Operation:
    """
    将请求归入唯一的操作。

    is_dir 为目标路径的类型：True 目录，False 文件，None 不存在。
    """
    method = method.upper()

    if method == "POST":
        for key, operation in _POST_MARKERS:
            if _has(args, key):
                return operation

    if _has(args, "zip"):
        return Operation.ZIP

    if method == "POST" and _has(args, "zipfiles"):
        return Operation.ZIP_MULTI

    if is_dir:
        return Operation.LISTING

    if _has(args, "markdown"):
        return Operation.MARKDOWN

    return Operation.FILE
