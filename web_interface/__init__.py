from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_compress import Compress
from typing import Dict, Any, Optional
import ipaddress
import logging
from auth import Authenticator, current_identity
from config import Config
from permissions import AuthenticationRequired, PermissionManager
from storage.registry import RootRegistry, InvalidRootError
from .browse import browse_bp, ShareState, json_result, unauthorized
from .render import register_filters

logger = logging.getLogger(__name__)


def _is_loopback(address: Optional[str]) -> bool:
    if not address:
        return False
    try:
        return ipaddress.ip_address(address).is_loopback
    except ValueError:
        return False


def create_web_app(registry: RootRegistry, permissions: PermissionManager,
                   authenticator: Optional[Authenticator] = None,
                   settings: Optional[Dict[str, Any]] = None):
    """创建 Flask 应用"""
    app = Flask(__name__, static_folder=None)
    app.config.from_object(Config)
    app.config.update(settings or {})
    # 整个请求的上限为单文件上限的 10 倍（多文件上传）
    app.config['MAX_CONTENT_LENGTH'] = Config.max_upload_size(app.config) * 10

    if app.config.get('CORS_ORIGINS'):
        CORS(app, resources={r"/_api/*": {"origins": app.config['CORS_ORIGINS']}})

    # gzip 压缩页面与 JSON 应答；文件下载与 ZIP 流原样发送
    Compress(app)

    app.extensions['davshare'] = ShareState(registry, permissions, authenticator)
    register_filters(app)

    def may_change_root(caps) -> bool:
        """切换根目录：启用认证时仅限 all 用户，否则仅限本机"""
        if permissions.auth_required:
            return caps.is_admin
        if app.config.get('ALLOW_REMOTE_CHDIR'):
            return True
        return _is_loopback(request.remote_addr)

    @app.before_request
    def log_request():
        if app.config.get('VERBOSE'):
            logger.info(f"[{request.method}] {request.remote_addr} {request.path}")

    # 管理 API（独立于浏览路径）
    @app.route('/_api/chdir', methods=['POST'])
    def api_chdir():
        """切换共享根目录"""
        state = app.extensions['davshare']
        try:
            caps = permissions.capabilities(current_identity(request.environ))
        except AuthenticationRequired:
            return unauthorized(state)

        if not may_change_root(caps):
            logger.warning(f"Root change refused for {request.remote_addr}")
            return json_result("Forbidden: changing directory not allowed", 403)

        data = request.get_json(silent=True)
        new_dir = data.get('dir') if isinstance(data, dict) else None
        if not isinstance(new_dir, str) or not new_dir:
            return json_result("Invalid request", 400)

        try:
            new_root = registry.set(new_dir)
        except InvalidRootError:
            return json_result("Directory does not exist")
        except (OSError, ValueError) as e:
            logger.error(f"Change directory error: {e}")
            return json_result("Invalid path")

        return jsonify({'success': True, 'dir': new_root})

    app.register_blueprint(browse_bp)

    # 错误处理
    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Internal server error: {error}")
        return getattr(error, 'description', None) or "Internal Server Error", 500

    return app
