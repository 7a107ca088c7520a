"""
Source Resolvers

Turns a configured source URL into a single direct download URL. The URL is
classified once into a provider kind, and the resolver registered for that
kind does the provider-specific work: API lookups for GitHub, Jenkins,
Modrinth and CurseForge, and deterministic URL construction for the others.
Anything unrecognized is treated as a direct link.
"""

import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple, Type

from autoupdateplugins.constants import (
    CURSEFORGE_SERVERMODS_FILES_URL,
    GITHUB_API_BASE,
    GUIZHAN_DOWNLOAD_BASE,
    MODRINTH_PROJECT_VERSIONS_URL,
    SPIGET_RESOURCE_DOWNLOAD_URL,
)
from autoupdateplugins.exceptions import NetworkError, ResolutionError
from autoupdateplugins.log_utils import logger

from .fetcher import HttpFetcher
from .report import RunReport

_GITHUB_REPO_RX = re.compile(r"/([^/]+)/([^/]+)$")
_TRAILING_ID_RX = re.compile(r"([0-9]+)$")
_LAST_SEGMENT_RX = re.compile(r"/([^/]+)$")
_THREE_SEGMENTS_RX = re.compile(r"/([^/]+)/([^/]+)/([^/]+)$")
_CURSEFORGE_PROJECT_ID_RX = re.compile(r'data-project-id="([0-9]+)"')


class ProviderKind(Enum):
    GITHUB = "GitHub"
    JENKINS = "Jenkins"
    SPIGOT = "Spigot"
    MODRINTH = "Modrinth"
    BUKKIT = "Bukkit"
    GUIZHAN = "Guizhan"
    MINEBBS = "MineBBS"
    CURSEFORGE = "CurseForge"
    PASSTHROUGH = "URL"

    @property
    def label(self) -> str:
        return f"[{self.value}] "


# Checked in order; the first marker contained in the URL wins.
_CLASSIFICATION_RULES: List[Tuple[ProviderKind, str]] = [
    (ProviderKind.GITHUB, "://github.com/"),
    (ProviderKind.JENKINS, "://ci."),
    (ProviderKind.SPIGOT, "://www.spigotmc.org/"),
    (ProviderKind.MODRINTH, "://modrinth.com/"),
    (ProviderKind.BUKKIT, "://dev.bukkit.org/"),
    (ProviderKind.GUIZHAN, "://builds.guizhanss.com/"),
    (ProviderKind.MINEBBS, "://www.minebbs.com/"),
    (ProviderKind.CURSEFORGE, "://legacy.curseforge.com/"),
]


def classify_source(source_url: str) -> ProviderKind:
    """
    Determine which provider hosts a source URL.

    Parameters:
        source_url (str): The configured source URL.

    Returns:
        ProviderKind: The first matching provider, or PASSTHROUGH if none matches.
    """
    for kind, marker in _CLASSIFICATION_RULES:
        if marker in source_url:
            return kind
    return ProviderKind.PASSTHROUGH


def matches_file_name(pattern: Optional[Pattern[str]], file_name: str) -> bool:
    """
    Check a candidate file name against the entry's filter.

    Returns:
        bool: `True` when there is no filter or the filter matches the whole name.
    """
    if pattern is None:
        return True
    return pattern.fullmatch(file_name) is not None


class ProviderResolver(ABC):
    """
    Resolves source URLs of one provider kind.

    Subclasses raise ResolutionError for anything that prevents a direct URL from
    being produced; NetworkError from the fetcher may propagate and is converted by
    SourceResolver.
    """

    kind: ProviderKind = ProviderKind.PASSTHROUGH

    def __init__(self, fetcher: HttpFetcher):
        self.fetcher = fetcher

    @abstractmethod
    def resolve(
        self, url: str, pattern: Optional[Pattern[str]], want_pre_release: bool
    ) -> str:
        """
        Produce the direct download URL for `url`.

        Parameters:
            url (str): Source URL with any trailing slash removed.
            pattern (Optional[Pattern[str]]): Compiled file-name filter, or `None` to take the first candidate.
            want_pre_release (bool): Whether pre-releases may be chosen (GitHub only).

        Returns:
            str: The direct download URL.
        """

    def error(self, message: str, url: str) -> ResolutionError:
        return ResolutionError(message, provider=self.kind.label, source_url=url)

    def _first_match(
        self,
        candidates: Iterable[Any],
        pattern: Optional[Pattern[str]],
        name_key: str,
    ) -> Optional[Dict[str, Any]]:
        for candidate in candidates:
            if not isinstance(candidate, dict):
                continue
            if matches_file_name(pattern, str(candidate.get(name_key))):
                return candidate
        return None


class GithubResolver(ProviderResolver):
    """Picks an asset from the latest (or most recent, pre-releases included) GitHub release."""

    kind = ProviderKind.GITHUB

    def resolve(self, url, pattern, want_pre_release):
        match = _GITHUB_REPO_RX.search(url)
        if not match:
            raise self.error("Repository path not found", url)
        repo_path = match.group(0)

        if want_pre_release:
            releases = self.fetcher.get_json(f"{GITHUB_API_BASE}{repo_path}/releases")
            if not isinstance(releases, list) or not releases:
                raise self.error("No releases found", url)
            release = releases[0]
        else:
            release = self.fetcher.get_json(
                f"{GITHUB_API_BASE}{repo_path}/releases/latest"
            )

        if not isinstance(release, dict) or not isinstance(release.get("assets"), list):
            raise self.error("Release has no asset list", url)

        asset = self._first_match(release["assets"], pattern, "name")
        if asset is None or not asset.get("browser_download_url"):
            raise self.error("No matching file", url)
        return str(asset["browser_download_url"])


class JenkinsResolver(ProviderResolver):
    """Picks an artifact of the job's last successful build."""

    kind = ProviderKind.JENKINS

    def resolve(self, url, pattern, want_pre_release):
        build = self.fetcher.get_json(f"{url}/lastSuccessfulBuild/api/json")
        artifacts = build.get("artifacts") if isinstance(build, dict) else None
        if not isinstance(artifacts, list):
            raise self.error("Build has no artifact list", url)

        artifact = self._first_match(artifacts, pattern, "fileName")
        if artifact is None or not artifact.get("relativePath"):
            raise self.error("No matching file", url)
        return f"{url}/lastSuccessfulBuild/artifact/{artifact['relativePath']}"


class SpigotResolver(ProviderResolver):
    """Maps a Spigot resource page to the Spiget download mirror."""

    kind = ProviderKind.SPIGOT

    def resolve(self, url, pattern, want_pre_release):
        match = _TRAILING_ID_RX.search(url)
        if not match:
            raise self.error("URL does not end with a resource id", url)
        return SPIGET_RESOURCE_DOWNLOAD_URL.format(resource_id=match.group(1))


class ModrinthResolver(ProviderResolver):
    """Scans a Modrinth project's versions, newest first, for a matching file."""

    kind = ProviderKind.MODRINTH

    def resolve(self, url, pattern, want_pre_release):
        match = _LAST_SEGMENT_RX.search(url)
        if not match:
            raise self.error("Project name not found", url)

        versions = self.fetcher.get_json(
            MODRINTH_PROJECT_VERSIONS_URL.format(slug=match.group(1))
        )
        if not isinstance(versions, list):
            raise self.error("Version list is malformed", url)

        for version in versions:
            files = version.get("files") if isinstance(version, dict) else None
            if not isinstance(files, list):
                continue
            found = self._first_match(files, pattern, "filename")
            if found is not None and found.get("url"):
                return str(found["url"])
        raise self.error("No matching file", url)


class BukkitResolver(ProviderResolver):
    """Dev.bukkit.org redirects `/files/latest` to the newest file itself."""

    kind = ProviderKind.BUKKIT

    def resolve(self, url, pattern, want_pre_release):
        return f"{url}/files/latest"


class GuizhanResolver(ProviderResolver):
    """Builds the `latest` download URL of the Guizhan build site from owner/repo/branch."""

    kind = ProviderKind.GUIZHAN

    def resolve(self, url, pattern, want_pre_release):
        match = _THREE_SEGMENTS_RX.search(url)
        if not match:
            raise self.error("Repository path not found", url)
        return f"{GUIZHAN_DOWNLOAD_BASE}{match.group(0)}/latest"


class MineBBSResolver(ProviderResolver):
    kind = ProviderKind.MINEBBS

    def resolve(self, url, pattern, want_pre_release):
        return f"{url}/download"


class CurseForgeResolver(ProviderResolver):
    """Finds the project id on a legacy CurseForge page and takes its newest server-mod file."""

    kind = ProviderKind.CURSEFORGE

    def resolve(self, url, pattern, want_pre_release):
        html = self.fetcher.get_text(url)
        project_id = None
        for chunk in html.split("<a"):
            match = _CURSEFORGE_PROJECT_ID_RX.search(chunk)
            if match:
                project_id = match.group(1)
                break
        if project_id is None:
            raise self.error("Project id not found", url)

        files = self.fetcher.get_json(
            CURSEFORGE_SERVERMODS_FILES_URL.format(project_id=project_id)
        )
        if not isinstance(files, list) or not files:
            raise self.error("Project has no files", url)
        latest = files[-1]
        if not isinstance(latest, dict) or not latest.get("downloadUrl"):
            raise self.error("Latest file has no download URL", url)
        return str(latest["downloadUrl"])


class PassthroughResolver(ProviderResolver):
    kind = ProviderKind.PASSTHROUGH

    def resolve(self, url, pattern, want_pre_release):
        return url


PROVIDER_RESOLVERS: Dict[ProviderKind, Type[ProviderResolver]] = {
    ProviderKind.GITHUB: GithubResolver,
    ProviderKind.JENKINS: JenkinsResolver,
    ProviderKind.SPIGOT: SpigotResolver,
    ProviderKind.MODRINTH: ModrinthResolver,
    ProviderKind.BUKKIT: BukkitResolver,
    ProviderKind.GUIZHAN: GuizhanResolver,
    ProviderKind.MINEBBS: MineBBSResolver,
    ProviderKind.CURSEFORGE: CurseForgeResolver,
    ProviderKind.PASSTHROUGH: PassthroughResolver,
}


class SourceResolver:
    """
    Entry point for URL resolution.

    resolve() either returns a direct URL or raises ResolutionError; network, decoding
    and filter errors are all converted so nothing else escapes.
    """

    def __init__(self, fetcher: HttpFetcher, report: Optional[RunReport] = None):
        """
        Parameters:
            fetcher (HttpFetcher): Fetcher used for provider API calls.
            report (Optional[RunReport]): Run report that receives the "found" lines; the logger is used when omitted.
        """
        self.fetcher = fetcher
        self.report = report
        self._resolvers: Dict[ProviderKind, ProviderResolver] = {
            kind: resolver_cls(fetcher)
            for kind, resolver_cls in PROVIDER_RESOLVERS.items()
        }

    def resolve(
        self,
        source_url: str,
        file_name_filter: str = "",
        want_pre_release: bool = False,
        tag: str = "",
    ) -> str:
        """
        Resolve a configured source URL to a direct download URL.

        Parameters:
            source_url (str): The configured source URL.
            file_name_filter (str): Regular expression the chosen file name must fully match; empty takes the first candidate.
            want_pre_release (bool): Consider pre-releases (GitHub).
            tag (str): Entry tag prefixed to report lines.

        Returns:
            str: The direct download URL.

        Raises:
            ResolutionError: If the provider could not produce a URL.
        """
        kind = classify_source(source_url)
        url = source_url.rstrip("/") if kind is not ProviderKind.PASSTHROUGH else source_url

        try:
            pattern = re.compile(file_name_filter) if file_name_filter else None
        except re.error as e:
            raise ResolutionError(
                "Invalid file name filter",
                provider=kind.label,
                source_url=source_url,
                details=f"{file_name_filter!r}: {e}",
            ) from e

        try:
            resolved = self._resolvers[kind].resolve(url, pattern, want_pre_release)
        except ResolutionError:
            raise
        except NetworkError as e:
            raise ResolutionError(
                "Request failed", provider=kind.label, source_url=source_url, details=str(e)
            ) from e
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise ResolutionError(
                "Unexpected response", provider=kind.label, source_url=source_url, details=str(e)
            ) from e

        message = f"{kind.label}Found version: {resolved}"
        if self.report is not None:
            self.report.debug(message, tag)
        else:
            logger.debug(message)
        return resolved
