"""
Test cases for the GitHub release and comment sinks.
"""

from unittest.mock import AsyncMock, patch

import pytest

from apkgate.core.enums import EventType, PublishTargetKind
from apkgate.core.exceptions import StepFailed
from apkgate.core.models import BuildArtifact, ChangeEvent
from apkgate.publish.github import GitHubClient, GitHubCommentService, GitHubReleaseStore
from apkgate.publish.summary import release_marker


@pytest.fixture
def client():
    return GitHubClient(repository="owner/app", token="secret")


@pytest.fixture
def artifact(tmp_path):
    apk = tmp_path / "app-fdroid-debug.apk"
    apk.write_bytes(b"PK fake apk")
    return BuildArtifact(binary_path=str(apk), size_bytes=11, sha256="d" * 64, build_number=9)


@pytest.fixture
def push_main():
    return ChangeEvent(EventType.PUSH, "main", commit_sha="abc123")


def test_repo_url(client):
    assert client.repo_url("releases") == "https://api.github.com/repos/owner/app/releases"
    assert client.repo_url("/issues/1/comments").endswith("/repos/owner/app/issues/1/comments")


class TestGitHubReleaseStore:

    @pytest.mark.asyncio
    async def test_creates_new_release(self, client, artifact, push_main):
        store = GitHubReleaseStore(client)
        responses = [
            None,                                    # GET releases/tags/<tag>
            [],                                      # GET releases
            {
                'id': 1,
                'html_url': 'https://github.com/owner/app/releases/tag/t',
                'upload_url': 'https://uploads.github.com/repos/owner/app/releases/1/assets{?name,label}',
                'assets': [],
            },
            {'id': 100},                             # asset upload
        ]
        with patch.object(client, 'request', new=AsyncMock(side_effect=responses)) as request:
            receipt = await store.publish_release("v1.0-test-20240305-build9", artifact, push_main, body="notes")

        assert receipt.kind == PublishTargetKind.RELEASE_STORE
        assert receipt.location == 'https://github.com/owner/app/releases/tag/t'
        assert receipt.prerelease

        create_call = request.await_args_list[2]
        assert create_call.args[0] == 'POST'
        payload = create_call.kwargs['json']
        assert payload['prerelease'] is True
        assert payload['target_commitish'] == "abc123"
        assert release_marker(9, "push") in payload['body']

        upload_call = request.await_args_list[3]
        assert upload_call.args[1] == "https://uploads.github.com/repos/owner/app/releases/1/assets"
        assert upload_call.kwargs['params'] == {'name': 'app-fdroid-debug.apk'}

    @pytest.mark.asyncio
    async def test_updates_release_found_by_marker(self, client, artifact, push_main):
        store = GitHubReleaseStore(client)
        marker = release_marker(9, "push")
        existing = {
            'id': 5,
            'tag_name': 'v1.0-test-20240304-build9',
            'body': f"{marker}\nold",
            'upload_url': 'https://uploads.github.com/repos/owner/app/releases/5/assets{?name,label}',
            'assets': [{'id': 77, 'name': 'app-fdroid-debug.apk'}],
        }
        responses = [
            None,
            [{'id': 4, 'body': 'other'}, existing],
            {**existing, 'html_url': 'https://github.com/r/5'},
            None,                                    # DELETE old asset
            {'id': 101},
        ]
        with patch.object(client, 'request', new=AsyncMock(side_effect=responses)) as request:
            receipt = await store.publish_release("v1.0-test-20240305-build9", artifact, push_main, body="notes")

        methods = [c.args[0] for c in request.await_args_list]
        assert methods == ['GET', 'GET', 'PATCH', 'DELETE', 'POST']
        assert request.await_args_list[2].args[1].endswith("/releases/5")
        assert request.await_args_list[3].args[1].endswith("/releases/assets/77")
        assert receipt.location == 'https://github.com/r/5'

    @pytest.mark.asyncio
    async def test_upload_goes_to_release_upload_url(self, artifact, push_main):
        client = GitHubClient(repository="owner/app", token="secret", api_url="https://ghe.example.com/api/v3")
        store = GitHubReleaseStore(client)
        responses = [
            None,
            [],
            {
                'id': 3,
                'html_url': 'https://ghe.example.com/owner/app/releases/tag/t',
                'upload_url': 'https://ghe.example.com/api/uploads/repos/owner/app/releases/3/assets{?name,label}',
                'assets': [],
            },
            {'id': 102},
        ]
        with patch.object(client, 'request', new=AsyncMock(side_effect=responses)) as request:
            await store.publish_release("v1.0-test-20240305-build9", artifact, push_main, body="notes")

        assert request.await_args_list[1].args[1] == "https://ghe.example.com/api/v3/repos/owner/app/releases"
        upload_call = request.await_args_list[3]
        assert upload_call.args[1] == "https://ghe.example.com/api/uploads/repos/owner/app/releases/3/assets"

    @pytest.mark.asyncio
    async def test_release_without_upload_url_fails(self, client, artifact, push_main):
        store = GitHubReleaseStore(client)
        responses = [None, [], {'id': 1, 'assets': []}]
        with patch.object(client, 'request', new=AsyncMock(side_effect=responses)):
            with pytest.raises(StepFailed) as exc_info:
                await store.publish_release("tag", artifact, push_main, body="notes")
        assert exc_info.value.step_name == "github_api"

    @pytest.mark.asyncio
    async def test_marked_release_found_past_first_page(self, client, artifact, push_main):
        store = GitHubReleaseStore(client)
        marker = release_marker(9, "push")
        first_page = [{'id': i, 'body': f"release {i}"} for i in range(100)]
        existing = {
            'id': 500,
            'tag_name': 'v1.0-test-20230101-build9',
            'body': f"{marker}\nold",
            'upload_url': 'https://uploads.github.com/repos/owner/app/releases/500/assets{?name,label}',
            'assets': [],
        }
        responses = [
            None,
            first_page,
            [existing],
            {**existing, 'html_url': 'https://github.com/r/500'},
            {'id': 103},
        ]
        with patch.object(client, 'request', new=AsyncMock(side_effect=responses)) as request:
            receipt = await store.publish_release("v1.0-test-20240305-build9", artifact, push_main, body="notes")

        assert request.await_args_list[1].kwargs['params'] == {'per_page': 100, 'page': 1}
        assert request.await_args_list[2].kwargs['params'] == {'per_page': 100, 'page': 2}
        patch_call = request.await_args_list[3]
        assert patch_call.args == ('PATCH', client.repo_url("releases/500"))
        assert receipt.location == 'https://github.com/r/500'

    @pytest.mark.asyncio
    async def test_api_failure_propagates(self, client, artifact, push_main):
        store = GitHubReleaseStore(client)
        failure = StepFailed("github_api", reason="HTTP 500")
        with patch.object(client, 'request', new=AsyncMock(side_effect=failure)):
            with pytest.raises(StepFailed):
                await store.publish_release("tag", artifact, push_main, body="notes")


class TestGitHubCommentService:

    @pytest.mark.asyncio
    async def test_updates_marked_comment(self, client):
        service = GitHubCommentService(client)
        responses = [
            [{'id': 1, 'body': 'lgtm'}, {'id': 2, 'body': '<!-- m -->\nold'}],
            {'id': 2, 'html_url': 'https://github.com/c/2'},
        ]
        with patch.object(client, 'request', new=AsyncMock(side_effect=responses)) as request:
            url = await service.upsert_comment(7, "<!-- m -->", "<!-- m -->\nnew")

        assert url == 'https://github.com/c/2'
        patch_call = request.await_args_list[1]
        assert patch_call.args == ('PATCH', client.repo_url("issues/comments/2"))
        assert patch_call.kwargs['json'] == {'body': "<!-- m -->\nnew"}

    @pytest.mark.asyncio
    async def test_marked_comment_found_past_first_page(self, client):
        service = GitHubCommentService(client)
        first_page = [{'id': i, 'body': 'lgtm'} for i in range(100)]
        responses = [
            first_page,
            [{'id': 250, 'body': '<!-- m -->\nold'}],
            {'id': 250, 'html_url': 'https://github.com/c/250'},
        ]
        with patch.object(client, 'request', new=AsyncMock(side_effect=responses)) as request:
            url = await service.upsert_comment(7, "<!-- m -->", "<!-- m -->\nnew")

        assert url == 'https://github.com/c/250'
        methods = [c.args[0] for c in request.await_args_list]
        assert methods == ['GET', 'GET', 'PATCH']
        assert request.await_args_list[1].kwargs['params']['page'] == 2

    @pytest.mark.asyncio
    async def test_creates_comment_when_none_marked(self, client):
        service = GitHubCommentService(client)
        responses = [[], {'id': 3, 'html_url': 'https://github.com/c/3'}]
        with patch.object(client, 'request', new=AsyncMock(side_effect=responses)) as request:
            url = await service.upsert_comment(7, "<!-- m -->", "body")

        assert url == 'https://github.com/c/3'
        assert request.await_args_list[1].args == ('POST', client.repo_url("issues/7/comments"))
