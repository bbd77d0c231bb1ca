from __future__ import annotations

import logging
from pathlib import Path

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.resources import FileResource

from mcp_sandbox.config import get_settings, setup_logging

logger = logging.getLogger(__name__)

URI_PREFIX = "docs://files/"


class ResourceNotFoundError(LookupError):
    pass


def _docs_dir() -> Path:
    return get_settings().docs_dir.expanduser().resolve()


def list_markdown_files(docs_dir: Path) -> list[str]:
    try:
        return sorted(p.name for p in docs_dir.iterdir() if p.is_file() and p.suffix == ".md")
    except OSError as exc:
        logger.error("Error reading docs directory %s: %s", docs_dir, exc)
        return []


def read_doc(docs_dir: Path, name: str) -> str:
    if not name.endswith(".md") or "/" in name or "\\" in name:
        raise ResourceNotFoundError(f"Resource not found: {URI_PREFIX}{name}")
    path = docs_dir / name
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ResourceNotFoundError(f"Resource not found: {URI_PREFIX}{name}") from exc


def register_docs(server: FastMCP, docs_dir: Path) -> list[str]:
    names = list_markdown_files(docs_dir)
    for name in names:
        server.add_resource(
            FileResource(
                uri=f"{URI_PREFIX}{name}",
                name=name,
                description=f"The content of the {name} documentation file.",
                mime_type="text/markdown",
                path=(docs_dir / name).resolve(),
            )
        )
    logger.info("Registered %d documentation resource(s) from %s", len(names), docs_dir)
    return names


mcp = FastMCP("documentation-resource-server")


@mcp.resource(f"{URI_PREFIX}{{name}}", mime_type="text/markdown")
def documentation_file(name: str) -> str:
    """Read a markdown file from the documentation directory."""
    return read_doc(_docs_dir(), name)


def main() -> None:
    setup_logging()
    register_docs(mcp, _docs_dir())
    mcp.run()


if __name__ == "__main__":
    main()
