"""
GitHub REST API sinks for releases and pull request comments.
"""
import asyncio
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

import aiohttp

from ..core.enums import PublishTargetKind
from ..core.exceptions import StepFailed
from ..core.models import BuildArtifact, ChangeEvent, PublishReceipt
from .stores import CommentService, ReleaseStore
from .summary import release_marker


class GitHubClient:
    """Minimal authenticated GitHub API client"""

    def __init__(
        self,
        repository: str,
        token: str,
        api_url: str = "https://api.github.com",
        http_timeout: float = 60.0
    ):
        """
        Args:
            repository: ``owner/name``
            token: Token with contents:write and pull-requests:write
            api_url: API root, differs on GitHub Enterprise
            http_timeout: Total timeout per request in seconds
        """
        self.repository = repository
        self.token = token
        self.api_url = api_url.rstrip('/')
        self.http_timeout = http_timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self.logger = logging.getLogger(__name__)

    def repo_url(self, path: str) -> str:
        return f"{self.api_url}/repos/{self.repository}/{path.lstrip('/')}"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.http_timeout),
                headers={
                    'Authorization': f"Bearer {self.token}",
                    'Accept': 'application/vnd.github+json',
                    'X-GitHub-Api-Version': '2022-11-28',
                }
            )
        return self._session

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Optional[Any] = None,
        data: Optional[bytes] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        allow_404: bool = False
    ) -> Optional[Any]:
        """
        Perform a request and decode the JSON response.

        Returns:
            Decoded body, or None for 404 when allow_404 is set and for 204

        Raises:
            StepFailed: On HTTP errors and timeouts
        """
        session = await self._get_session()
        try:
            async with session.request(
                method, url, json=json, data=data, params=params, headers=headers
            ) as response:
                if response.status == 404 and allow_404:
                    return None
                if response.status >= 400:
                    text = await response.text()
                    self.logger.error(f"GitHub {method} {url} failed with {response.status}: {text[:500]}")
                    raise StepFailed(
                        "github_api",
                        diagnostic_ref=url,
                        reason=f"HTTP {response.status}"
                    )
                if response.status == 204:
                    return None
                return await response.json()
        except asyncio.TimeoutError as e:
            raise StepFailed("github_api", diagnostic_ref=url, reason="request timed out") from e
        except aiohttp.ClientError as e:
            raise StepFailed("github_api", diagnostic_ref=url, reason=str(e)) from e

    async def paginate(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        per_page: int = 100
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield items of a list endpoint page by page until a short page"""
        page = 1
        while True:
            batch = await self.request(
                'GET', url, params={**(params or {}), 'per_page': per_page, 'page': page}
            ) or []
            for item in batch:
                yield item
            if len(batch) < per_page:
                return
            page += 1


class GitHubReleaseStore(ReleaseStore):
    """Publishes prereleases with the APK attached as an asset"""

    def __init__(self, client: GitHubClient):
        self.client = client
        self.logger = logging.getLogger(__name__)

    async def _find_release(self, tag: str, marker: str) -> Optional[Dict[str, Any]]:
        release = await self.client.request(
            'GET', self.client.repo_url(f"releases/tags/{tag}"), allow_404=True
        )
        if release:
            return release

        # Same build published earlier under another date
        async for candidate in self.client.paginate(self.client.repo_url("releases")):
            if marker in (candidate.get('body') or ''):
                return candidate
        return None

    async def publish_release(
        self,
        tag: str,
        artifact: BuildArtifact,
        event: ChangeEvent,
        body: str,
        prerelease: bool = True
    ) -> PublishReceipt:
        marker = release_marker(artifact.build_number, event.event_type.value)
        if marker not in body:
            body = f"{marker}\n{body}"

        payload = {
            'tag_name': tag,
            'name': tag,
            'body': body,
            'prerelease': prerelease,
            'draft': False,
        }
        if event.commit_sha:
            payload['target_commitish'] = event.commit_sha

        existing = await self._find_release(tag, marker)
        if existing:
            self.logger.info(f"Updating existing release {existing.get('tag_name')} -> {tag}")
            release = await self.client.request(
                'PATCH', self.client.repo_url(f"releases/{existing['id']}"), json=payload
            )
        else:
            release = await self.client.request('POST', self.client.repo_url("releases"), json=payload)

        await self._replace_asset(release, Path(artifact.binary_path))

        self.logger.info(f"Published GitHub release {tag}")
        return PublishReceipt(
            kind=PublishTargetKind.RELEASE_STORE,
            name=tag,
            location=release.get('html_url', ''),
            build_number=artifact.build_number,
            event_type=event.event_type,
            prerelease=prerelease,
        )

    async def _replace_asset(self, release: Dict[str, Any], binary: Path):
        for asset in release.get('assets') or []:
            if asset.get('name') == binary.name:
                await self.client.request(
                    'DELETE', self.client.repo_url(f"releases/assets/{asset['id']}")
                )

        with open(binary, 'rb') as f:
            content = f.read()

        # URI template ".../assets{?name,label}", its host differs on GitHub Enterprise
        upload_url = (release.get('upload_url') or '').split('{', 1)[0]
        if not upload_url:
            raise StepFailed("github_api", diagnostic_ref=release.get('url'), reason="release has no upload_url")
        await self.client.request(
            'POST',
            upload_url,
            data=content,
            params={'name': binary.name},
            headers={'Content-Type': 'application/vnd.android.package-archive'},
        )


class GitHubCommentService(CommentService):
    """Upserts a single marked comment on a pull request"""

    def __init__(self, client: GitHubClient):
        self.client = client
        self.logger = logging.getLogger(__name__)

    async def upsert_comment(self, pr_number: int, marker: str, body: str) -> str:
        async for comment in self.client.paginate(self.client.repo_url(f"issues/{pr_number}/comments")):
            if marker in (comment.get('body') or ''):
                updated = await self.client.request(
                    'PATCH',
                    self.client.repo_url(f"issues/comments/{comment['id']}"),
                    json={'body': body}
                )
                self.logger.info(f"Updated comment {comment['id']} on PR #{pr_number}")
                return updated.get('html_url', str(comment['id']))

        created = await self.client.request(
            'POST',
            self.client.repo_url(f"issues/{pr_number}/comments"),
            json={'body': body}
        )
        self.logger.info(f"Created comment on PR #{pr_number}")
        return created.get('html_url', '')
