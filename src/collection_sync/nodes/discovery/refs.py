"""Decides which branches and tags of a repository are searched."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import TYPE_CHECKING

from collection_sync.entities import RefSpec, RefType, RepositoryInfo

if TYPE_CHECKING:
    from collection_sync.scm.base import ScmClient

logger = logging.getLogger(__name__)


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a tag glob: ``*`` is any run of characters, ``?`` is one character.

    Every other regex metacharacter is matched literally.
    """
    escaped = re.escape(pattern)
    return re.compile(escaped.replace(r"\*", ".*").replace(r"\?", "."))


def matches_tag_pattern(tag: str, patterns: Sequence[str]) -> bool:
    return any(glob_to_regex(p).fullmatch(tag) for p in patterns)


def filter_tags(tags: Sequence[str], patterns: Sequence[str] | None) -> list[str]:
    if not patterns:
        return []
    return [t for t in tags if matches_tag_pattern(t, patterns)]


async def resolve_refs(
    client: ScmClient,
    repo: RepositoryInfo,
    branches: Sequence[str] = (),
    tag_patterns: Sequence[str] = (),
) -> list[RefSpec]:
    """List the refs to crawl for ``repo``.

    The default branch always comes first. Configured branches are added only
    if they exist and were not already included; tags are added when they match
    a pattern. Branches and tags are only fetched when configured.
    """
    refs = [RefSpec(ref=repo.default_branch, ref_type=RefType.BRANCH)]
    searched_branches = {repo.default_branch}
    logger.debug("[%s] Default branch: %s", repo.full_path, repo.default_branch)

    if branches:
        available = await client.list_branches(repo)
        logger.debug("[%s] Available branches: %s", repo.full_path, ", ".join(available) or "none")
        wanted = set(branches)
        for branch in available:
            if branch in wanted and branch not in searched_branches:
                refs.append(RefSpec(ref=branch, ref_type=RefType.BRANCH))
                searched_branches.add(branch)
        logger.debug("[%s] Branches to search: %s", repo.full_path, ", ".join(sorted(searched_branches)))

    if tag_patterns:
        available_tags = await client.list_tags(repo)
        matching = filter_tags(available_tags, tag_patterns)
        logger.debug(
            "[%s] %d of %d tags match %s",
            repo.full_path,
            len(matching),
            len(available_tags),
            ", ".join(tag_patterns),
        )
        refs.extend(RefSpec(ref=t, ref_type=RefType.TAG) for t in matching)

    return refs
