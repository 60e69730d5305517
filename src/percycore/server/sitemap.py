"""Automatic sitemap generation for the static server."""

from __future__ import annotations

import asyncio
import posixpath
import re
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from urllib.parse import quote, urljoin
from xml.sax.saxutils import escape

from percycore.server.rewrites import Rewriter, invert_rules, rules_from_mapping

SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"

# Trailing /index.html or .html, dropped in clean-URL mode
CLEAN_URL_SUFFIX = re.compile(r"(/index)?\.html$")


def create_url_resolver(
    rewrites: Mapping[str, str],
    base_url: str = "/",
    clean_urls: bool = False,
) -> Callable[[str, str], str]:
    """Build a function mapping a served file to its public URL.

    The returned callable takes a file path relative to the served
    directory and the server's address, and returns an absolute URL.
    """
    to_public_path = Rewriter(invert_rules(rules_from_mapping(rewrites)))

    def resolve(filename: str, address: str) -> str:
        path = to_public_path(filename)
        if clean_urls:
            path = CLEAN_URL_SUFFIX.sub("", path)
        return urljoin(address, quote(posixpath.join(base_url, path.lstrip("/"))))

    return resolve


def discover_html_files(directory: Path | str) -> list[str]:
    """Find every HTML file under ``directory`` as a relative POSIX path.

    Hidden files and directories are skipped. Results are sorted.

    Raises:
        FileNotFoundError: If ``directory`` does not exist.
    """
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Directory not found: {root}")

    files = []
    for path in root.rglob("*.html"):
        relative = path.relative_to(root)
        if any(part.startswith(".") for part in relative.parts):
            continue
        if path.is_file():
            files.append(relative.as_posix())
    return sorted(files)


def render_sitemap(urls: Iterable[str]) -> str:
    return "\n".join([
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<urlset xmlns="{SITEMAP_NAMESPACE}">',
        *(f"  <url><loc>{escape(url)}</loc></url>" for url in urls),
        "</urlset>",
    ])


async def generate_sitemap(
    directory: Path | str,
    resolve: Callable[[str, str], str],
    address: str,
) -> str:
    files = await asyncio.to_thread(discover_html_files, directory)
    return render_sitemap(resolve(name, address) for name in files)
