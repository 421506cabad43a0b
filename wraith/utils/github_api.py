"""
github_api.py - Minimal GitHub REST client

This module provides the few GitHub REST endpoints wraith needs: branch and
tag listings, commit comparison, and fetching a repository's workflows.
"""

import base64
import binascii
import json
import logging
import ssl
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .version import __version__

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
PER_PAGE = 100


class GitHubAPIError(Exception):
    """Exception raised for failed GitHub API requests"""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass(frozen=True)
class Branch:
    name: str
    commit_sha: str


@dataclass(frozen=True)
class Tag:
    name: str
    commit_sha: str


class ComparisonStatus(Enum):
    """Relationship of ``head`` to ``base`` in a commit comparison"""

    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"
    IDENTICAL = "identical"


def api_base_for(hostname: str) -> str:
    """
    Get the REST API root for a GitHub host

    Args:
        hostname: ``github.com`` or a GitHub Enterprise Server host

    Returns:
        Base URL without a trailing slash
    """
    if hostname.lower() == "github.com":
        return "https://api.github.com"
    return f"https://{hostname}/api/v3"


class GitHubClient:
    """Client for the GitHub REST API"""

    def __init__(
        self,
        token: Optional[str] = None,
        hostname: str = "github.com",
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        """
        Initialize the client

        Args:
            token: Personal access token or GITHUB_TOKEN
            hostname: GitHub host to talk to
            timeout: Per-request timeout in seconds
        """
        self.token = token
        self.api_base = api_base_for(hostname)
        self.timeout = timeout
        self._context = ssl.create_default_context()
        self._branches: Dict[Tuple[str, str], List[Branch]] = {}
        self._tags: Dict[Tuple[str, str], List[Tag]] = {}

    def _request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.api_base}/{endpoint}"
        if params:
            url += "?" + urllib.parse.urlencode(params)

        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": f"wraith/{__version__}",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        req = urllib.request.Request(url, headers=headers)
        logger.debug("GET %s", url)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout, context=self._context) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            raise GitHubAPIError(f"HTTP {e.code}: {e.reason} ({url})", status=e.code) from e
        except urllib.error.URLError as e:
            raise GitHubAPIError(f"URL error: {e.reason} ({url})") from e
        except TimeoutError as e:
            raise GitHubAPIError(f"request timed out after {self.timeout}s ({url})") from e
        except ValueError as e:
            raise GitHubAPIError(f"invalid JSON response ({url}): {e}") from e

    def paginate(self, endpoint: str) -> List[Dict[str, Any]]:
        """
        Fetch every page of a list endpoint

        Pages are requested until GitHub returns an empty one.

        Args:
            endpoint: Endpoint path relative to the API root

        Returns:
            Concatenated items from all pages
        """
        items: List[Dict[str, Any]] = []
        page = 1
        while True:
            batch = self._request(endpoint, {"page": page, "per_page": PER_PAGE})
            if not isinstance(batch, list):
                raise GitHubAPIError(f"expected a list from {endpoint}")
            if not batch:
                return items
            items.extend(batch)
            page += 1

    def list_branches(self, owner: str, repo: str) -> List[Branch]:
        key = (owner, repo)
        if key not in self._branches:
            self._branches[key] = [
                Branch(name=item["name"], commit_sha=item["commit"]["sha"])
                for item in self.paginate(f"repos/{owner}/{repo}/branches")
            ]
        return self._branches[key]

    def list_tags(self, owner: str, repo: str) -> List[Tag]:
        key = (owner, repo)
        if key not in self._tags:
            self._tags[key] = [
                Tag(name=item["name"], commit_sha=item["commit"]["sha"])
                for item in self.paginate(f"repos/{owner}/{repo}/tags")
            ]
        return self._tags[key]

    def compare_commits(
        self, owner: str, repo: str, base: str, head: str
    ) -> Optional[ComparisonStatus]:
        """
        Compare two commits

        Args:
            owner: Repository owner
            repo: Repository name
            base: Base ref or commit
            head: Head ref or commit

        Returns:
            The head's status relative to base, or None if the two share
            no history (GitHub answers 404)
        """
        try:
            result = self._request(f"repos/{owner}/{repo}/compare/{base}...{head}")
        except GitHubAPIError as e:
            if e.status == 404:
                return None
            raise
        return ComparisonStatus(result["status"])

    def fetch_workflows(self, owner: str, repo: str, git_ref: Optional[str]) -> Dict[str, str]:
        """
        Fetch the workflow files of a repository

        Args:
            owner: Repository owner
            repo: Repository name
            git_ref: Branch, tag or commit; None for the default branch

        Returns:
            Mapping of repository path to file contents
        """
        params = {"ref": git_ref} if git_ref else None
        try:
            listing = self._request(f"repos/{owner}/{repo}/contents/.github/workflows", params)
        except GitHubAPIError as e:
            if e.status == 404:
                logger.warning("%s/%s has no .github/workflows directory", owner, repo)
                return {}
            raise

        workflows = {}
        for entry in listing:
            path = entry.get("path", "")
            if entry.get("type") != "file" or not path.endswith((".yml", ".yaml")):
                continue
            item = self._request(f"repos/{owner}/{repo}/contents/{path}", params)
            try:
                workflows[path] = base64.b64decode(item["content"]).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as e:
                logger.error("Error decoding %s/%s:%s: %s", owner, repo, path, e)
        return workflows
