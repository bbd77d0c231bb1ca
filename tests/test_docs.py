"""Tests for the documentation resource server."""

import pytest
from mcp.server.fastmcp import FastMCP

from mcp_sandbox import docs


class TestDocumentationFiles:
    """Test cases for listing and reading markdown files."""

    def setup_method(self):
        """Set up test fixtures."""
        self.server = FastMCP("docs-test")

    def test_lists_only_markdown(self, tmp_path):
        (tmp_path / "b.md").write_text("# B")
        (tmp_path / "a.md").write_text("# A")
        (tmp_path / "notes.txt").write_text("skip")
        (tmp_path / "dir.md").mkdir()

        assert docs.list_markdown_files(tmp_path) == ["a.md", "b.md"]

    def test_missing_directory_lists_nothing(self, tmp_path):
        assert docs.list_markdown_files(tmp_path / "missing") == []

    def test_read_doc(self, tmp_path):
        (tmp_path / "guide.md").write_text("# Guide\n")

        assert docs.read_doc(tmp_path, "guide.md") == "# Guide\n"

    @pytest.mark.parametrize("name", ["missing.md", "../secret.md", "sub/file.md", "", "notes.txt", ".."])
    def test_read_doc_not_found(self, tmp_path, name):
        with pytest.raises(docs.ResourceNotFoundError, match="Resource not found"):
            docs.read_doc(tmp_path, name)

    @pytest.mark.asyncio
    async def test_register_docs(self, tmp_path):
        """Test that each markdown file becomes a readable resource."""
        (tmp_path / "Guide.md").write_text("# Guide\n")

        names = docs.register_docs(self.server, tmp_path)
        resources = await self.server.list_resources()

        assert names == ["Guide.md"]
        assert [str(r.uri) for r in resources] == ["docs://files/Guide.md"]
        assert resources[0].mimeType == "text/markdown"
        contents = list(await self.server.read_resource("docs://files/Guide.md"))
        assert contents[0].content == "# Guide\n"

    @pytest.mark.asyncio
    async def test_template_registered(self):
        """Test that the docs server exposes the read template."""
        templates = await docs.mcp.list_resource_templates()

        assert [t.uriTemplate for t in templates] == ["docs://files/{name}"]

    def test_read_doc_rejects_non_markdown(self, tmp_path):
        """Test that existing files outside the markdown listing are not served."""
        (tmp_path / "secret.txt").write_text("token")

        with pytest.raises(docs.ResourceNotFoundError):
            docs.read_doc(tmp_path, "secret.txt")
