"""GitHub REST client and git transport.

Only what batch processing needs: repository lookup, shallow clone,
and opening a pull request built through the git data API.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import httpx

from .errors import HostingError, NotFoundError

log = logging.getLogger(__name__)

API_URL = "https://api.github.com"
REQUEST_TIMEOUT = 30
CLONE_TIMEOUT = 120


@dataclass(frozen=True)
class RepoMetadata:
    owner: str
    name: str
    default_branch: str
    clone_url: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


def get_github_token() -> str | None:
    """Find a token: GITHUB_TOKEN, GH_TOKEN, then the gh CLI."""
    for var in ("GITHUB_TOKEN", "GH_TOKEN"):
        token = os.environ.get(var, "").strip()
        if token:
            return token
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True, text=True, timeout=10,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    token = result.stdout.strip()
    return token if result.returncode == 0 and token else None


class GitHubClient:
    """Minimal GitHub API client authenticated with a token."""

    def __init__(self, token: str, base_url: str = API_URL):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            timeout=REQUEST_TIMEOUT,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )

    def _call(self, method: str, path: str, json: Any = None) -> httpx.Response:
        url = f"{self.base_url}{path}"
        log.debug("%s %s", method.upper(), url)
        try:
            if method == "get":
                return self._client.get(url)
            if method == "patch":
                return self._client.patch(url, json=json)
            return self._client.post(url, json=json)
        except httpx.TimeoutException:
            raise HostingError(f"GitHub request timed out: {method.upper()} {path}")
        except httpx.HTTPError as e:
            raise HostingError(f"GitHub request failed: {e}")

    def _json(self, method: str, path: str, json: Any = None, expect: tuple[int, ...] = (200, 201)) -> dict:
        resp = self._call(method, path, json)
        if resp.status_code not in expect:
            raise HostingError(f"GitHub returned {resp.status_code} for {path}: {resp.text[:200]}")
        return resp.json()

    def get_repo(self, owner: str, name: str) -> RepoMetadata:
        resp = self._call("get", f"/repos/{owner}/{name}")
        if resp.status_code == 404:
            raise NotFoundError(f"Repository not found or inaccessible: {owner}/{name}")
        if resp.status_code != 200:
            raise HostingError(f"GitHub returned {resp.status_code} for {owner}/{name}: {resp.text[:200]}")
        data = resp.json()
        return RepoMetadata(
            owner=data["owner"]["login"],
            name=data["name"],
            default_branch=data.get("default_branch") or "main",
            clone_url=data["clone_url"],
        )

    def open_pull_request(
        self,
        repo: RepoMetadata,
        branch: str,
        files: Mapping[str, str],
        title: str,
        body: str = "",
    ) -> str:
        """Commit `path -> content` files on a new branch and open a PR. Returns its URL."""
        base = f"/repos/{repo.full_name}"
        ref = self._json("get", f"{base}/git/ref/heads/{repo.default_branch}")
        base_sha = ref["object"]["sha"]
        base_commit = self._json("get", f"{base}/git/commits/{base_sha}")

        tree = self._json("post", f"{base}/git/trees", {
            "base_tree": base_commit["tree"]["sha"],
            "tree": [
                {"path": path, "mode": "100644", "type": "blob", "content": content}
                for path, content in sorted(files.items())
            ],
        })
        commit = self._json("post", f"{base}/git/commits", {
            "message": title,
            "tree": tree["sha"],
            "parents": [base_sha],
        })

        resp = self._call("post", f"{base}/git/refs", {"ref": f"refs/heads/{branch}", "sha": commit["sha"]})
        if resp.status_code == 422:
            # Branch left over from an earlier run
            self._json("patch", f"{base}/git/refs/heads/{branch}", {"sha": commit["sha"], "force": True})
        elif resp.status_code != 201:
            raise HostingError(f"GitHub returned {resp.status_code} creating branch {branch}: {resp.text[:200]}")

        pr = self._json("post", f"{base}/pulls", {
            "title": title,
            "head": branch,
            "base": repo.default_branch,
            "body": body,
        })
        return pr["html_url"]

    def close(self) -> None:
        self._client.close()


def clone_repo(repo: RepoMetadata, token: str, dest: Path) -> Path:
    """Shallow-clone the default branch into dest/<name>. Returns clone path."""
    clone_dir = dest / repo.owner / repo.name
    clone_dir.parent.mkdir(parents=True, exist_ok=True)
    url = repo.clone_url.replace("https://", f"https://x-access-token:{token}@", 1)

    try:
        result = subprocess.run(
            ["git", "clone", "--depth=1", "--single-branch", url, str(clone_dir)],
            capture_output=True, text=True, timeout=CLONE_TIMEOUT,
        )
    except subprocess.TimeoutExpired:
        raise HostingError(f"Git clone timed out after {CLONE_TIMEOUT}s: {repo.full_name}")
    except FileNotFoundError:
        raise HostingError("git is not installed")
    if result.returncode != 0:
        stderr = result.stderr.replace(token, "***")
        raise HostingError(f"Git clone failed: {stderr[:200]}")
    return clone_dir
