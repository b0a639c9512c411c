"""路径解析与包含检查"""

import os

import pytest

from models import Breadcrumb
from storage.paths import (PathEscapeError, build_breadcrumbs, clean_relative,
                           is_within, resolve, resolve_child, url_join)

ROOT = os.path.join(os.sep, "srv", "data")


def test_resolve_root_itself():
    assert resolve(ROOT, "/") == ROOT
    assert resolve(ROOT, "") == ROOT
    assert resolve(ROOT, "/./") == ROOT


def test_resolve_descendant():
    assert resolve(ROOT, "/docs/readme.md") == os.path.join(ROOT, "docs", "readme.md")


def test_resolve_collapses_inner_dotdot():
    assert resolve(ROOT, "/docs/../hello.txt") == os.path.join(ROOT, "hello.txt")


def test_sibling_with_common_prefix_is_forbidden():
    with pytest.raises(PathEscapeError):
        resolve(ROOT, "/../database/secrets.txt")


@pytest.mark.parametrize("request_path", [
    "/..",
    "../",
    "/../../etc/passwd",
    "/docs/../../data2/x",
    "..\\..\\windows",
    "/a/b/../../../c",
])
def test_traversal_is_forbidden(request_path):
    with pytest.raises(PathEscapeError):
        resolve(ROOT, request_path)


def test_absolute_looking_paths_stay_inside():
    resolved = resolve(ROOT, "//etc/passwd")
    assert resolved == os.path.join(ROOT, "etc", "passwd")
    assert is_within(resolved, ROOT)


def test_nul_byte_is_rejected():
    with pytest.raises(PathEscapeError):
        resolve(ROOT, "/hello\x00.txt")


def test_is_within_does_not_match_partial_segments():
    assert is_within(ROOT, ROOT)
    assert is_within(os.path.join(ROOT, "x"), ROOT)
    assert not is_within(os.path.join(os.sep, "srv", "database"), ROOT)
    assert not is_within(os.path.join(os.sep, "srv"), ROOT)


def test_is_within_filesystem_root():
    assert is_within(os.path.join(os.sep, "anything"), os.sep)


def test_clean_relative():
    assert clean_relative("sub/dir/file.txt") == "sub/dir/file.txt"
    assert clean_relative("/sub//dir/./file.txt") == "sub/dir/file.txt"
    assert clean_relative("") == ""
    with pytest.raises(PathEscapeError):
        clean_relative("../../etc/passwd")


def test_resolve_child_checks_against_root():
    directory = os.path.join(ROOT, "docs")
    assert resolve_child(directory, ROOT, "a.txt") == os.path.join(directory, "a.txt")
    assert resolve_child(directory, ROOT, "../b.txt") == os.path.join(ROOT, "b.txt")
    with pytest.raises(PathEscapeError):
        resolve_child(directory, ROOT, "../../b.txt")


def test_url_join_uses_forward_slashes():
    assert url_join("/", "a") == "/a"
    assert url_join("/docs", "a b.txt") == "/docs/a b.txt"
    assert url_join("/docs/", "sub", is_dir=True) == "/docs/sub/"
    assert url_join("", "a") == "/a"


def test_breadcrumbs():
    assert build_breadcrumbs("/") == []
    assert build_breadcrumbs("/a/b/") == [Breadcrumb("a", "/a"), Breadcrumb("b", "/a/b")]


def test_resolve_child_rejects_nul_byte():
    with pytest.raises(PathEscapeError):
        resolve_child(ROOT, ROOT, "a\x00b")
