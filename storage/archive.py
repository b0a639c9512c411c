"""
ZIP 流式打包

archive(base_dir, names) 逐块产出压缩数据，不在内存中缓存整个归档。
条目名称相对于 base_dir，使用正斜杠，目录条目以 "/" 结尾。
"""

import os
import logging
import zipfile
from typing import Iterable, Iterator, List

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class _ChunkBuffer:
    """只写缓冲区；没有 tell/seek，zipfile 会改用数据描述符写入"""

    def __init__(self):
        self._chunks: List[bytes] = []

    def write(self, data) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def flush(self):
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def _arcname(path: str, base_dir: str) -> str:
    return os.path.relpath(path, base_dir).replace(os.sep, "/")


def _walk(path: str, base_dir: str) -> Iterator[tuple]:
    """产出 (文件系统路径, 条目名称)，目录先于其内容"""
    if not os.path.isdir(path):
        yield path, _arcname(path, base_dir)
        return

    yield path, _arcname(path, base_dir) + "/"
    for dirpath, dirnames, filenames in os.walk(
        path, onerror=lambda e: logger.warning(f"Cannot read {e.filename}: {e}")
    ):
        dirnames.sort()
        for dirname in dirnames:
            full = os.path.join(dirpath, dirname)
            yield full, _arcname(full, base_dir) + "/"
        for filename in sorted(filenames):
            full = os.path.join(dirpath, filename)
            yield full, _arcname(full, base_dir)


def archive(base_dir: str, names: Iterable[str]) -> Iterator[bytes]:
    """把 base_dir 下的若干条目（文件或目录，递归）打包为 ZIP 流"""
    buffer = _ChunkBuffer()
    with zipfile.ZipFile(buffer, mode="w", compression=zipfile.ZIP_DEFLATED,
                         allowZip64=True) as zf:
        for name in names:
            for full_path, arcname in _walk(os.path.join(base_dir, name), base_dir):
                try:
                    info = zipfile.ZipInfo.from_file(full_path, arcname)
                except OSError as e:
                    logger.warning(f"Skipping {full_path} in archive: {e}")
                    continue

                if info.is_dir():
                    zf.writestr(info, b"")
                else:
                    info.compress_type = zipfile.ZIP_DEFLATED
                    try:
                        with open(full_path, "rb") as src, zf.open(info, "w") as dest:
                            while True:
                                chunk = src.read(CHUNK_SIZE)
                                if not chunk:
                                    break
                                dest.write(chunk)
                                data = buffer.drain()
                                if data:
                                    yield data
                    except OSError as e:
                        logger.warning(f"Skipping {full_path} in archive: {e}")

                data = buffer.drain()
                if data:
                    yield data

    # 中央目录
    data = buffer.drain()
    if data:
        yield data


def archive_directory(directory: str) -> Iterator[bytes]:
    """打包整个目录的内容（条目名称相对于该目录）"""
    try:
        names = sorted(os.listdir(directory))
    except OSError as e:
        logger.warning(f"Cannot read {directory}: {e}")
        names = []
    return archive(directory, names)


def archive_name(url_path: str) -> str:
    name = url_path.rstrip("/").rsplit("/", 1)[-1]
    return f"{name}.zip" if name else "download.zip"
