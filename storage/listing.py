import os
import logging
from typing import List

from models import FileEntry, sort_entries
from storage.paths import url_join

logger = logging.getLogger(__name__)

EDITABLE_EXTENSIONS = {
    ".txt", ".md", ".markdown",
    ".go", ".py", ".js", ".ts",
    ".html", ".htm", ".css", ".scss",
    ".json", ".xml", ".yaml", ".yml",
    ".toml", ".ini", ".conf", ".config",
    ".sh", ".bash", ".zsh", ".fish",
    ".ps1", ".bat", ".cmd",
    ".c", ".cpp", ".h", ".hpp",
    ".java", ".kt", ".scala",
    ".rb", ".php", ".pl", ".lua",
    ".rs", ".swift", ".m",
    ".sql", ".csv", ".tsv",
    ".log", ".env", ".gitignore",
    ".dockerfile", ".makefile",
}

# 无扩展名的常见文本文件
EDITABLE_NAMES = {"readme", "license", "makefile", "dockerfile", "gemfile", "rakefile"}


def is_editable(name: str) -> bool:
    """按扩展名判断是否可在线编辑"""
    lowered = name.lower()
    # ".gitignore" 之类的点文件整体视为扩展名
    if lowered.startswith(".") and lowered.count(".") == 1:
        return lowered in EDITABLE_EXTENSIONS
    ext = os.path.splitext(lowered)[1]
    if not ext:
        return lowered in EDITABLE_NAMES
    return ext in EDITABLE_EXTENSIONS


def list_directory(directory: str, url_path: str) -> List[FileEntry]:
    """读取目录并生成列表（目录在前，名称不区分大小写排序）"""
    entries = []
    with os.scandir(directory) as it:
        for item in it:
            try:
                is_dir = item.is_dir()
                info = item.stat()
            except OSError as e:
                logger.warning(f"Skipping unreadable entry {item.path}: {e}")
                continue

            entries.append(FileEntry(
                name=item.name,
                url_path=url_join(url_path, item.name, is_dir=is_dir),
                is_dir=is_dir,
                size=0 if is_dir else info.st_size,
                modified=info.st_mtime,
                editable=not is_dir and is_editable(item.name),
            ))
    return sort_entries(entries)
