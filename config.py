import os
from pathlib import Path
from typing import Dict, Any, List


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    # 基础配置
    BASE_DIR = Path(__file__).parent
    VERSION = "1.0.0"
    VERBOSE = os.getenv("SHARE_VERBOSE", "false").lower() == "true"

    # 共享目录与监听配置
    ROOT_DIR = os.getenv("SHARE_ROOT", ".")
    LISTEN = _split_list(os.getenv("SHARE_LISTEN", "localhost:8080"))

    # 权限配置
    PERMISSION_LEVEL = os.getenv("SHARE_PERMLEVEL", "readonly")
    LOGINS_FILE = os.getenv("SHARE_LOGINS") or None
    AUTH_REALM = os.getenv("SHARE_REALM", "DavShare")
    ALLOW_REMOTE_CHDIR = os.getenv("SHARE_ALLOW_REMOTE_CHDIR", "false").lower() == "true"
    CORS_ORIGINS = _split_list(os.getenv("SHARE_CORS_ORIGINS", ""))

    # 日志配置
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE") or None

    # 上传限制（单个文件，单位 MB；整个请求允许 10 倍）
    MAX_UPLOAD_MB = int(os.getenv("SHARE_MAX_UPLOAD_MB", "100"))

    # 响应压缩（flask-compress）
    COMPRESS_MIMETYPES = ["text/html", "text/css", "text/javascript", "application/json"]
    COMPRESS_STREAMS = False
    COMPRESS_ALGORITHM = "gzip"

    @classmethod
    def as_dict(cls) -> Dict[str, Any]:
        """导出为设置字典"""
        return {
            key: getattr(cls, key)
            for key in dir(cls)
            if key.isupper()
        }

    @classmethod
    def max_upload_size(cls, settings: Dict[str, Any]) -> int:
        return int(settings.get("MAX_UPLOAD_MB", cls.MAX_UPLOAD_MB)) * 1024 * 1024
