#!/usr/bin/env python3
"""
浏览与文件操作蓝图

对每个请求：快照根目录 -> 解析路径 -> 计算能力 -> 分类操作 -> 检查能力 -> 执行。
"""

import os
import shutil
import logging
import posixpath
from typing import NamedTuple, Optional
from urllib.parse import quote

from flask import (Blueprint, Response, abort, current_app, jsonify, redirect,
                   render_template, request, send_file)
from werkzeug.http import quote_header_value

from auth import Authenticator, current_identity
from config import Config
from permissions import AuthenticationRequired, Capabilities, PermissionManager
from routing import Operation, REQUIRED_CAPABILITY, JSON_OPERATIONS, classify
from storage.archive import archive, archive_directory, archive_name
from storage.listing import list_directory
from storage.paths import (PathEscapeError, build_breadcrumbs, clean_relative,
                           resolve, resolve_child)
from storage.registry import RootRegistry
from web_interface.render import is_markdown, render_markdown

logger = logging.getLogger(__name__)

browse_bp = Blueprint('browse', __name__)


class UploadRejected(Exception):
    """单个上传文件被拒绝"""


class ShareState:
    """应用共享状态（app.extensions['davshare']）"""

    def __init__(self, registry: RootRegistry, permissions: PermissionManager,
                 authenticator: Optional[Authenticator] = None):
        self.registry = registry
        self.permissions = permissions
        self.authenticator = authenticator


class RequestContext(NamedTuple):
    root: str
    target: str
    url_path: str
    capabilities: Capabilities


def get_state() -> ShareState:
    return current_app.extensions['davshare']


def json_result(error: Optional[str] = None, status: int = 200, **extra):
    """JSON 操作的统一应答；失败通过 success 字段表示"""
    body = {'success': error is None}
    if error is not None:
        body['error'] = error
    body.update(extra)
    return jsonify(body), status


def unauthorized(state: ShareState):
    if state.authenticator is not None:
        return state.authenticator.challenge()
    abort(401)


def attachment(filename: str) -> str:
    try:
        filename.encode('ascii')
    except UnicodeEncodeError:
        return f"attachment; filename*=UTF-8''{quote(filename)}"
    return f"attachment; filename={quote_header_value(filename, allow_token=False)}"


def zip_response(stream, filename: str) -> Response:
    return Response(
        stream,
        mimetype='application/zip',
        headers={'Content-Disposition': attachment(filename)},
    )


@browse_bp.route('/', defaults={'path': ''}, methods=['GET', 'HEAD', 'POST'])
@browse_bp.route('/<path:path>', methods=['GET', 'HEAD', 'POST'])
def dispatch(path):
    """所有浏览请求的入口"""
    state = get_state()
    root = state.registry.snapshot(request.environ)
    url_path = request.path

    try:
        target = resolve(root, url_path)
    except PathEscapeError:
        logger.warning(f"Path escapes root: {url_path}")
        abort(403)

    try:
        caps = state.permissions.capabilities(current_identity(request.environ))
    except AuthenticationRequired:
        return unauthorized(state)

    if os.path.isdir(target):
        is_dir = True
    elif os.path.exists(target):
        is_dir = False
    else:
        is_dir = None

    operation = classify(request.method, request.args, is_dir)
    if not caps.allows(REQUIRED_CAPABILITY[operation]):
        identity = current_identity(request.environ)
        username = identity.username if identity else 'Anonymous'
        logger.warning(f"Permission denied: {username} tried to {operation.value} {url_path}")
        if operation in JSON_OPERATIONS:
            return json_result(f"Forbidden: {operation.value} not allowed", 403)
        abort(403, f"Forbidden: {operation.value} not allowed")

    return HANDLERS[operation](RequestContext(root, target, url_path, caps))


def _stream_size(stream) -> int:
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def save_upload(storage, target_dir: str, root: str, max_size: int) -> str:
    """保存单个上传文件；文件名可带相对路径（文件夹上传），按需创建父目录"""
    size = _stream_size(storage.stream)
    if size > max_size:
        raise UploadRejected(f"file {storage.filename} too large")

    relative = clean_relative(storage.filename or "")
    if not relative:
        raise UploadRejected("missing file name")

    destination = resolve_child(target_dir, root, relative)
    os.makedirs(os.path.dirname(destination), exist_ok=True)
    storage.save(destination)
    return destination


def handle_upload(ctx: RequestContext):
    files = request.files.getlist('files')
    if not files:
        abort(400, "No files uploaded")

    max_size = Config.max_upload_size(current_app.config)
    saved = 0
    last_error = None

    for storage in files:
        try:
            destination = save_upload(storage, ctx.target, ctx.root, max_size)
        except (UploadRejected, PathEscapeError, OSError) as e:
            # TODO: 部分失败目前被静默丢弃，待确认是否需要逐个文件返回结果
            logger.warning(f"Upload of {storage.filename!r} failed: {e}")
            last_error = e
            continue
        logger.info(f"Uploaded {destination}")
        saved += 1

    if saved == 0 and last_error is not None:
        abort(500, f"Upload failed: {last_error}")

    return redirect(quote(ctx.url_path), code=303)


def handle_delete(ctx: RequestContext):
    try:
        target = resolve(ctx.root, request.args.get('delete', ''))
    except PathEscapeError:
        return json_result("Invalid path", 403)

    if target == ctx.root:
        return json_result("Cannot delete the served root", 403)

    try:
        if os.path.isdir(target) and not os.path.islink(target):
            shutil.rmtree(target)
        elif os.path.lexists(target):
            os.remove(target)
    except OSError as e:
        logger.error(f"Delete {target} failed: {e}")
        return json_result(str(e))

    logger.info(f"Deleted {target}")
    return json_result()


def handle_rename(ctx: RequestContext):
    new_name = request.args.get('newname', '')
    if not new_name:
        return json_result("Missing new name", 400)

    try:
        source = resolve(ctx.root, request.args.get('rename', ''))
        destination = resolve_child(os.path.dirname(source), ctx.root, new_name)
    except PathEscapeError:
        return json_result("Invalid path", 403)

    if ctx.root in (source, destination):
        return json_result("Cannot rename the served root", 403)

    try:
        os.rename(source, destination)
    except OSError as e:
        logger.error(f"Rename {source} failed: {e}")
        return json_result(str(e))

    logger.info(f"Renamed {source} -> {destination}")
    return json_result()


def handle_mkdir(ctx: RequestContext):
    name = request.args.get('mkdir', '')
    # 单段名称，比一般的包含检查更严格
    if not name or '/' in name or '\\' in name or '..' in name:
        return json_result("Invalid directory name", 400)

    try:
        new_path = resolve_child(ctx.target, ctx.target, name)
    except PathEscapeError:
        return json_result("Invalid path", 403)

    if os.path.lexists(new_path):
        return json_result("Directory already exists")

    try:
        os.mkdir(new_path)
    except OSError as e:
        logger.error(f"Mkdir {new_path} failed: {e}")
        return json_result(str(e))

    logger.info(f"Created directory {new_path}")
    return json_result()


def handle_edit(ctx: RequestContext):
    if os.path.isdir(ctx.target):
        return json_result("Cannot edit a directory")

    content = request.get_data(cache=False)
    try:
        with open(ctx.target, 'wb') as f:
            f.write(content)
    except OSError as e:
        logger.error(f"Edit {ctx.target} failed: {e}")
        return json_result(str(e))

    logger.info(f"Saved {ctx.target} ({len(content)} bytes)")
    return json_result()


def handle_zip(ctx: RequestContext):
    if not os.path.isdir(ctx.target):
        abort(404)
    return zip_response(archive_directory(ctx.target), archive_name(ctx.url_path))


def handle_zip_multi(ctx: RequestContext):
    names = request.form.getlist('files')
    if not names:
        abort(400, "No files specified")
    if not os.path.isdir(ctx.target):
        abort(404)

    # 只取名称的最后一段，限定在当前目录内
    selected = []
    for name in names:
        leaf = posixpath.basename(name.replace('\\', '/').rstrip('/'))
        if leaf in ('', '.', '..'):
            continue
        try:
            full_path = resolve_child(ctx.target, ctx.root, leaf)
        except PathEscapeError:
            continue
        if os.path.lexists(full_path) and leaf not in selected:
            selected.append(leaf)

    return zip_response(archive(ctx.target, selected), "download.zip")


def handle_markdown(ctx: RequestContext):
    if not os.path.isfile(ctx.target):
        abort(404)
    if not is_markdown(ctx.target):
        abort(400, "Not a markdown file")

    try:
        with open(ctx.target, 'rb') as f:
            content = f.read()
    except OSError as e:
        logger.error(f"Cannot read {ctx.target}: {e}")
        abort(500, "Cannot read file")

    return Response(render_markdown(content), mimetype='text/html')


def handle_file(ctx: RequestContext):
    if not os.path.isfile(ctx.target):
        abort(404)
    return send_file(ctx.target, conditional=True)


def handle_listing(ctx: RequestContext):
    try:
        entries = list_directory(ctx.target, ctx.url_path)
    except OSError as e:
        logger.error(f"Cannot read directory {ctx.target}: {e}")
        abort(500, "Cannot read directory")

    return render_template(
        'listing.html',
        path=ctx.url_path,
        entries=entries,
        breadcrumbs=build_breadcrumbs(ctx.url_path),
        can_upload=ctx.capabilities.can_upload,
        can_modify=ctx.capabilities.can_modify,
        version=current_app.config.get('VERSION', Config.VERSION),
    )


HANDLERS = {
    Operation.UPLOAD: handle_upload,
    Operation.DELETE: handle_delete,
    Operation.RENAME: handle_rename,
    Operation.MKDIR: handle_mkdir,
    Operation.EDIT: handle_edit,
    Operation.ZIP: handle_zip,
    Operation.ZIP_MULTI: handle_zip_multi,
    Operation.MARKDOWN: handle_markdown,
    Operation.LISTING: handle_listing,
    Operation.FILE: handle_file,
}
