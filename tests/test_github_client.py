"""Tests for the GitHub repository client."""

import base64

import httpx
import pytest

from docsrag.services.github_client import (
    GitHubRepository,
    RepositoryError,
    parse_repo_identifier,
)

API = "https://api.github.com"

TREE = {
    "/repos/acme/docs/contents/": [
        {"type": "file", "name": "README.md", "path": "README.md", "sha": "r1"},
        {"type": "file", "name": "logo.png", "path": "logo.png", "sha": "p1"},
        {"type": "dir", "name": "docs", "path": "docs"},
    ],
    "/repos/acme/docs/contents/docs": [
        {"type": "file", "name": "guide.MD", "path": "docs/guide.MD", "sha": "g1"},
        {"type": "dir", "name": "nested", "path": "docs/nested"},
    ],
    "/repos/acme/docs/contents/docs/nested": [
        {"type": "file", "name": "deep.md", "path": "docs/nested/deep.md", "sha": "d1"},
    ],
    "/repos/acme/docs/contents/README.md": {
        "type": "file",
        "name": "README.md",
        "path": "README.md",
        "encoding": "base64",
        "content": base64.b64encode("# Readme\nHello, docs.\n".encode()).decode(),
    },
}


def github_handler(request: httpx.Request) -> httpx.Response:
    payload = TREE.get(request.url.path)
    if payload is None:
        return httpx.Response(404, json={"message": "Not Found"})
    return httpx.Response(200, json=payload)


@pytest.fixture
async def github(metrics):
    client = httpx.AsyncClient(transport=httpx.MockTransport(github_handler), base_url=API)
    repository = GitHubRepository("acme/docs", client=client, metrics=metrics)
    yield repository
    await client.aclose()


class TestParseRepoIdentifier:
    """Tests for repository identifier parsing."""

    @pytest.mark.parametrize(
        "value",
        [
            "acme/docs",
            "https://github.com/acme/docs",
            "https://github.com/acme/docs.git",
            "https://github.com/acme/docs/",
        ],
    )
    def test_accepted_forms(self, value):
        assert parse_repo_identifier(value) == ("acme", "docs")

    @pytest.mark.parametrize("value", ["", "acme", "https://example.com/a/b/c"])
    def test_rejected_forms(self, value):
        with pytest.raises(ValueError):
            parse_repo_identifier(value)


class TestListMarkdownFiles:
    """Tests for the iterative tree walk."""

    async def test_recursive_walk(self, github):
        files = await github.list_markdown_files()

        assert [f.path for f in files] == ["README.md", "docs/guide.MD", "docs/nested/deep.md"]
        assert files[0].sha == "r1"
        assert files[0].name == "README.md"

    async def test_non_recursive(self, github):
        files = await github.list_markdown_files(recursive=False)

        assert [f.path for f in files] == ["README.md"]

    async def test_max_depth(self, github):
        files = await github.list_markdown_files(max_depth=1)

        assert [f.path for f in files] == ["README.md", "docs/guide.MD"]

    async def test_start_path(self, github):
        files = await github.list_markdown_files("docs/nested")

        assert [f.path for f in files] == ["docs/nested/deep.md"]

    async def test_missing_path_raises(self, github):
        with pytest.raises(RepositoryError) as exc_info:
            await github.list_markdown_files("missing")

        assert exc_info.value.status_code == 404

    async def test_requests_are_recorded(self, github, metrics):
        await github.list_markdown_files()

        assert metrics.external_call_count("github", "contents") == 3


class TestGetFileContent:
    async def test_decodes_base64(self, github):
        assert await github.get_file_content("README.md") == "# Readme\nHello, docs.\n"

    async def test_directory_has_no_content(self, github):
        assert await github.get_file_content("docs") == ""

    async def test_missing_file_raises(self, github):
        with pytest.raises(RepositoryError):
            await github.get_file_content("nope.md")

    async def test_network_error_is_wrapped(self, metrics):
        def broken(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(broken), base_url=API)
        repository = GitHubRepository("acme/docs", client=client, metrics=metrics)

        with pytest.raises(RepositoryError) as exc_info:
            await repository.get_file_content("README.md")

        assert exc_info.value.status_code is None
        await client.aclose()


class TestClientConfiguration:
    async def test_token_sets_authorization_header(self):
        repository = GitHubRepository("acme/docs", token="ghp_secret")

        client = repository._get_client()

        assert client.headers["Authorization"] == "Bearer ghp_secret"
        assert client.headers["Accept"] == "application/vnd.github+json"
        await repository.close()

    async def test_anonymous_access(self):
        async with GitHubRepository("https://github.com/acme/docs") as repository:
            client = repository._get_client()

            assert "Authorization" not in client.headers
            assert repository.identifier == "acme/docs"
