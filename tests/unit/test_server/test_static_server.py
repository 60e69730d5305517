"""Tests for the static file server."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from percycore.server import StaticServerOptions, create_static_server


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """A served directory with an index, a page and a rewritten post."""
    pages = {
        "index.html": "<p>home</p>",
        "about.html": "<p>about</p>",
        "posts/hello.html": "<p>hello</p>",
    }
    for name, content in pages.items():
        page = tmp_path / name
        page.parent.mkdir(parents=True, exist_ok=True)
        page.write_text(content)
    return tmp_path


def make_client(site: Path, **kwargs) -> TestClient:
    return TestClient(create_static_server(StaticServerOptions(serve=site, **kwargs)))


class TestStaticFiles:
    def test_serves_index_and_files(self, site: Path) -> None:
        client = make_client(site)
        assert client.get("/").text == "<p>home</p>"
        assert client.get("/about.html").text == "<p>about</p>"

    def test_missing_file_is_json_404(self, site: Path) -> None:
        resp = make_client(site).get("/missing.html")
        assert resp.status_code == 404
        assert resp.json()["success"] is False

    def test_clean_urls_serve_without_extension(self, site: Path) -> None:
        client = make_client(site, clean_urls=True)
        assert client.get("/about").text == "<p>about</p>"
        assert make_client(site).get("/about").status_code == 404

    def test_rewrites_map_request_paths(self, site: Path) -> None:
        client = make_client(site, rewrites={"/blog/:slug": "/posts/:slug.html"})
        resp = client.get("/blog/hello")
        assert resp.status_code == 200
        assert resp.text == "<p>hello</p>"

    def test_base_url_mounts_files(self, site: Path) -> None:
        client = make_client(site, base_url="/docs/")
        assert client.get("/docs/about.html").text == "<p>about</p>"
        assert client.get("/about.html").status_code == 404

    def test_base_url_gets_leading_slash(self, site: Path) -> None:
        assert StaticServerOptions(serve=site, base_url="docs/").base_url == "/docs/"


class TestSitemapRoute:
    def test_sitemap_lists_public_urls(self, site: Path) -> None:
        client = make_client(site, rewrites={"/blog/:slug": "/posts/:slug.html"}, clean_urls=True)
        resp = client.get("/sitemap.xml")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/xml")
        assert [line.strip() for line in resp.text.splitlines()[2:-1]] == [
            "<url><loc>http://testserver/about</loc></url>",
            "<url><loc>http://testserver/</loc></url>",
            "<url><loc>http://testserver/blog/hello</loc></url>",
        ]

    def test_sitemap_uses_base_url(self, site: Path) -> None:
        resp = make_client(site, base_url="/docs/").get("/sitemap.xml")
        assert "<loc>http://testserver/docs/about.html</loc>" in resp.text

    def test_sitemap_encodes_names_it_can_serve(self, tmp_path: Path) -> None:
        (tmp_path / "my page.html").write_text("<p>spaced</p>")
        client = make_client(tmp_path)
        resp = client.get("/sitemap.xml")
        assert "<loc>http://testserver/my%20page.html</loc>" in resp.text
        assert client.get("/my%20page.html").text == "<p>spaced</p>"

    def test_sitemap_for_missing_directory_is_500(self, tmp_path: Path) -> None:
        resp = make_client(tmp_path / "gone").get("/sitemap.xml")
        assert resp.status_code == 500
        assert resp.json()["success"] is False
