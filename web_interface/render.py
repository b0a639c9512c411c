"""
外部渲染器：Markdown 转 HTML 以及目录列表模板使用的过滤器
"""

import os

import markdown

MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "sane_lists"]
MARKDOWN_SUFFIXES = (".md", ".markdown")

ICONS = {
    ".html": "🌐", ".htm": "🌐", ".css": "🎨", ".js": "📜", ".ts": "📘",
    ".json": "📋", ".xml": "📋", ".yaml": "📋", ".md": "📝", ".txt": "📄",
    ".pdf": "📕", ".jpg": "🖼️", ".jpeg": "🖼️", ".png": "🖼️", ".gif": "🖼️",
    ".mp4": "🎬", ".mp3": "🎵", ".zip": "📦", ".tar": "📦", ".gz": "📦",
    ".go": "🐹", ".py": "🐍", ".java": "☕", ".php": "🐘", ".rb": "💎",
}


def is_markdown(name: str) -> bool:
    return name.lower().endswith(MARKDOWN_SUFFIXES)


def render_markdown(content: bytes) -> str:
    """Markdown 字节转换为 HTML 片段"""
    text = content.decode("utf-8", errors="replace")
    return markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS)


def format_size(size: int) -> str:
    """人类可读的文件大小"""
    if size == 0:
        return "0 bytes"
    if size < 1024:
        return f"{size} bytes"
    units = ["KB", "MB", "GB", "TB"]
    value = size / 1024
    for unit in units[:-1]:
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} {units[-1]}"


def file_icon(name: str, is_dir: bool = False) -> str:
    if is_dir:
        return "📁"
    return ICONS.get(os.path.splitext(name)[1].lower(), "📄")


def register_filters(app) -> None:
    app.jinja_env.filters['filesize'] = format_size
    app.jinja_env.filters['icon'] = lambda entry: file_icon(entry.name, entry.is_dir)
