"""Unit tests for request path resolution."""

import os
from pathlib import Path

import pytest

from static_server.domain.resolution import (
    ForbiddenPath,
    NotFound,
    Redirect,
    Serve,
    canonical,
    clean_path,
    resolve,
    sandboxed_target,
)


@pytest.mark.parametrize(
    ("request_path", "expected"),
    [
        ("/", "/"),
        ("/about", "/about"),
        ("/blog/", "/blog/"),
        ("//evil.example", "/evil.example"),
        ("/a/./b", "/a/b"),
        ("/a//b/", "/a/b/"),
        ("/./", "/"),
    ],
)
def test_clean_path_collapses_segments(request_path: str, expected: str) -> None:
    assert clean_path(request_path) == expected


@pytest.mark.parametrize(
    "request_path",
    ["relative", "/../etc/passwd", "/a/../../b", "/a\\b", "/a\x00b", "/.."],
)
def test_clean_path_rejects_unsafe_paths(request_path: str) -> None:
    assert clean_path(request_path) is None


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/about.html", "/about/"),
        ("/index.html", "/"),
        ("/index", "/"),
        ("/blog/index.html", "/blog/"),
        ("/blog/index", "/blog/"),
        ("/about", "/about/"),
        ("/fooindex", "/fooindex/"),
        ("/fooindex.html", "/fooindex/"),
        ("/", "/"),
    ],
)
def test_canonical_forms(path: str, expected: str) -> None:
    assert canonical(path) == expected


@pytest.mark.parametrize(
    "path", ["/about.html", "/index", "/x/y/index.html", "/plain", "/deep/"]
)
def test_canonical_is_idempotent(path: str) -> None:
    once = canonical(path)
    assert canonical(once) == once


def test_root_serves_index(site_root: Path) -> None:
    assert resolve(site_root, "/") == Serve((site_root / "index.html").resolve())


def test_root_ignores_top_level_dot_html_file(site_root: Path) -> None:
    (site_root / ".html").write_text("nameless")

    assert resolve(site_root, "/") == Serve((site_root / "index.html").resolve())


def test_trailing_slash_prefers_sibling_html(site_root: Path) -> None:
    (site_root / "about").mkdir()
    (site_root / "about" / "index.html").write_text("shadowed")

    outcome = resolve(site_root, "/about/")

    assert outcome == Serve((site_root / "about.html").resolve())


def test_trailing_slash_falls_back_to_directory_index(site_root: Path) -> None:
    assert resolve(site_root, "/blog/") == Serve(
        (site_root / "blog" / "index.html").resolve()
    )


def test_trailing_slash_without_page_is_not_found(site_root: Path) -> None:
    assert resolve(site_root, "/missing/") == NotFound()
    assert resolve(site_root, "/css/") == NotFound()


def test_regular_file_is_served_directly(site_root: Path) -> None:
    assert resolve(site_root, "/css/site.css") == Serve(
        (site_root / "css" / "site.css").resolve()
    )
    assert resolve(site_root, "/robots.txt") == Serve(
        (site_root / "robots.txt").resolve()
    )


@pytest.mark.parametrize(
    ("request_path", "location"),
    [
        ("/about.html", "/about/"),
        ("/about", "/about/"),
        ("/index.html", "/"),
        ("/blog/index.html", "/blog/"),
        ("/blog/first-post.html", "/blog/first-post/"),
        ("/missing", "/missing/"),
        ("//evil.example", "/evil.example/"),
    ],
)
def test_page_paths_redirect_to_canonical(
    site_root: Path, request_path: str, location: str
) -> None:
    assert resolve(site_root, request_path) == Redirect(location)


def test_html_files_are_never_served_under_their_own_name(site_root: Path) -> None:
    outcome = resolve(site_root, "/404.html")

    assert isinstance(outcome, Redirect)
    assert outcome.location == "/404/"


def test_directory_without_slash_redirects(site_root: Path) -> None:
    assert resolve(site_root, "/css") == Redirect("/css/")


@pytest.mark.parametrize(
    "request_path",
    [
        "/",
        "/about",
        "/about.html",
        "/index.html",
        "/blog/index",
        "/blog/first-post.html",
        "/missing",
        "/missing.html",
        "/css",
        "/robots.txt",
    ],
)
def test_redirect_targets_never_redirect_again(site_root: Path, request_path: str) -> None:
    outcome = resolve(site_root, request_path)
    if isinstance(outcome, Redirect):
        assert not isinstance(resolve(site_root, outcome.location), Redirect)


@pytest.mark.parametrize(
    "request_path", ["/../secret.txt", "/blog/../../secret.txt", "/a\\..\\b"]
)
def test_traversal_is_rejected(site_root: Path, request_path: str) -> None:
    (site_root.parent / "secret.txt").write_text("secret")

    assert resolve(site_root, request_path) == NotFound(rejected=True)


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlink_escaping_root_is_not_served(site_root: Path) -> None:
    outside = site_root.parent / "outside.txt"
    outside.write_text("outside")
    (site_root / "leak.txt").symlink_to(outside)

    outcome = resolve(site_root, "/leak.txt")

    assert not isinstance(outcome, Serve)


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlink_inside_root_is_served(site_root: Path) -> None:
    (site_root / "alias.txt").symlink_to(site_root / "robots.txt")

    assert resolve(site_root, "/alias.txt") == Serve((site_root / "robots.txt").resolve())


def test_sandboxed_target_refuses_escape(tmp_path: Path) -> None:
    with pytest.raises(ForbiddenPath):
        sandboxed_target(tmp_path, "/../elsewhere")


def test_filesystem_errors_are_reported(site_root: Path, monkeypatch) -> None:
    reported = []
    real_stat = os.stat

    def failing_stat(path, *args, **kwargs):
        if str(path).endswith("robots.txt"):
            raise PermissionError(13, "Permission denied")
        return real_stat(path, *args, **kwargs)

    monkeypatch.setattr("static_server.domain.resolution.os.stat", failing_stat)

    outcome = resolve(
        site_root, "/robots.txt", on_error=lambda path, error: reported.append(error)
    )

    assert outcome == Redirect("/robots.txt/")
    assert len(reported) == 1
    assert isinstance(reported[0], PermissionError)
