"""Metric scorers for repository trust ratings.

Each scorer is an async callable ``scorer(owner, repo, context) -> float``
returning a value in [0, 1]. Scorers may raise; the engine turns failures
into a zero score.
"""

import json
import logging
import math
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from pkgrater.analyzers.github import GitHubFetcher, parse_timestamp
from pkgrater.models.schemas import GitHubRepoInfo

logger = logging.getLogger(__name__)


@dataclass
class RepoContext:
    """Data gathered once during setup and shared by every scorer."""

    fetcher: GitHubFetcher
    info: GitHubRepoInfo
    lines_of_code: int = 0


Scorer = Callable[[str, str, RepoContext], Awaitable[float]]


# --- Bus Factor ---


def gini_coefficient(values: list[float]) -> float:
    """Gini coefficient of a distribution (0 = perfectly equal)."""
    n = len(values)
    total = sum(values)
    if n == 0 or total == 0:
        return 0.0
    ordered = sorted(values)
    numerator = sum((2 * (i + 1) - n - 1) * value for i, value in enumerate(ordered))
    return numerator / (n * total)


def desired_bus_factor(lines_of_code: int) -> int:
    """Minimum number of contributors expected for a codebase of this size."""
    if lines_of_code < 1000:
        return 2
    return 2 + int(math.floor(math.log10(lines_of_code / 1000)))


async def bus_factor(owner: str, repo: str, context: RepoContext) -> float:
    """Score how evenly commits are spread across contributors."""
    contributors = await context.fetcher.fetch_contributor_stats(owner, repo)
    if not contributors:
        logger.info(f"No contributor stats for {owner}/{repo}")
        return 0.0

    commit_counts = [
        c.get("total", 0) for c in contributors if (c.get("author") or {}).get("login")
    ]
    if not commit_counts:
        return 0.0

    desired = desired_bus_factor(context.lines_of_code)
    if len(commit_counts) < desired:
        logger.info(f"{owner}/{repo} has {len(commit_counts)} contributors, fewer than {desired}")
        return 0.0

    gini = gini_coefficient(commit_counts)
    return min(1.0, (1 - gini) * 4)


# --- Correctness ---


async def correctness(owner: str, repo: str, context: RepoContext) -> float:
    """Score the share of resolved issues, penalized by bug density."""
    if context.lines_of_code == 0:
        logger.info(f"No lines of code found for {owner}/{repo}")
        return 0.0

    total_issues = await context.fetcher.count_issues(owner, repo)
    resolved_issues = await context.fetcher.count_issues(owner, repo, "is:closed")
    bug_issues = await context.fetcher.count_issues(owner, repo, "label:bug")

    resolved_ratio = resolved_issues / total_issues if total_issues > 0 else 1.0
    bug_ratio = min(1.0, bug_issues / context.lines_of_code)
    return 0.7 * resolved_ratio + 0.3 * (1 - bug_ratio)


# --- Ramp Up ---

README_TARGET_CHARS = 5000
DOCS_DIRS = {"docs", "doc", "documentation", "wiki"}
EXAMPLES_DIRS = {"examples", "example", "samples", "demo"}


async def ramp_up(owner: str, repo: str, context: RepoContext) -> float:
    """Score how easy the project is to pick up: README depth, docs and examples."""
    readme = await context.fetcher.fetch_readme_content(owner, repo) or ""
    root = await context.fetcher.fetch_root_contents(owner, repo)
    directories = {item.get("name", "").lower() for item in root if item.get("type") == "dir"}

    score = 0.5 * min(1.0, len(readme) / README_TARGET_CHARS)
    if directories & DOCS_DIRS:
        score += 0.25
    if directories & EXAMPLES_DIRS:
        score += 0.25
    return score


# --- Responsive Maintainer ---

RESPONSE_SAMPLE_SIZE = 10


async def responsive_maintainer(owner: str, repo: str, context: RepoContext) -> float:
    """Score first-response time and closure rate of recent issues."""
    issues = await context.fetcher.fetch_recent_issues(owner, repo, limit=100)
    if not issues:
        logger.info(f"No issues found for {owner}/{repo}")
        return 0.5

    closed = sum(1 for issue in issues if issue.get("state") == "closed")
    closure_rate = closed / len(issues)

    response_days = []
    commented = [issue for issue in issues if issue.get("comments", 0) > 0]
    for issue in commented[:RESPONSE_SAMPLE_SIZE]:
        created_at = parse_timestamp(issue.get("created_at"))
        first_comment_at = await context.fetcher.fetch_first_comment_time(owner, repo, issue["number"])
        if created_at and first_comment_at:
            response_days.append((first_comment_at - created_at).total_seconds() / 86400)

    if response_days:
        avg_days = sum(response_days) / len(response_days)
        response_score = max(0.0, 1 - avg_days / 30)
    else:
        response_score = 0.0

    return 0.2 * response_score + 0.8 * closure_rate


# --- License ---

LICENSE_COMPATIBILITY = {
    "MIT": 1.0,
    "Apache-2.0": 1.0,
    "BSD-2-Clause": 1.0,
    "BSD-3-Clause": 1.0,
    "BSD-3-Clause-Clear": 1.0,
    "BSD-4-Clause": 0.75,
    "0BSD": 1.0,
    "ISC": 1.0,
    "Zlib": 1.0,
    "CC0-1.0": 1.0,
    "Unlicense": 1.0,
    "WTFPL": 1.0,
    "BSL-1.0": 1.0,
    "AFL-3.0": 1.0,
    "OFL-1.1": 1.0,
    "NCSA": 1.0,
    "PostgreSQL": 1.0,
    "CC-BY-4.0": 1.0,
    "LGPL-2.1": 0.75,
    "LGPL-2.1+": 0.75,
    "LGPL-3.0": 0.75,
    "LGPL-3.0+": 0.75,
    "Artistic-2.0": 0.75,
    "ECL-2.0": 0.75,
    "LPPL-1.3c": 0.75,
    "CC-BY-SA-4.0": 0.75,
    "MPL-2.0": 0.5,
    "EPL-1.0": 0.5,
    "EPL-2.0": 0.5,
    "EUPL-1.1": 0.5,
    "EUPL-1.2": 0.5,
    "MS-PL": 0.5,
    "OSL-3.0": 0.5,
    "Apache-1.0": 0.5,
    "Apache-1.1": 0.5,
    "GPL-2.0": 0.25,
    "GPL-2.0+": 0.25,
    "GPL-3.0": 0.25,
    "GPL-3.0+": 0.25,
    "AGPL-3.0": 0.25,
    "AGPL-3.0+": 0.25,
    "CC-BY-NC-4.0": 0.0,
    "CC-BY-ND-4.0": 0.0,
    "CC-BY-NC-SA-4.0": 0.0,
    "CC-BY-NC-ND-4.0": 0.0,
}

# GitHub reports "-only" / "-or-later" SPDX variants
SPDX_SUFFIXES = {"-only": "", "-or-later": "+"}


def license_compatibility(license_id: str | None) -> float | None:
    """Compatibility of a license with permissive redistribution, or None if unknown."""
    if not license_id:
        return None
    license_id = license_id.strip()
    for suffix, replacement in SPDX_SUFFIXES.items():
        if license_id.endswith(suffix):
            license_id = license_id[: -len(suffix)] + replacement
    return LICENSE_COMPATIBILITY.get(license_id)


async def license_score(owner: str, repo: str, context: RepoContext) -> float:
    """Score the license declared by the repository or its package.json."""
    score = license_compatibility(context.info.license)
    if score is not None:
        return score

    package_json = await context.fetcher.fetch_file_content(owner, repo, "package.json")
    if package_json:
        try:
            declared = json.loads(package_json).get("license")
        except (json.JSONDecodeError, AttributeError):
            declared = None
        score = license_compatibility(declared if isinstance(declared, str) else None)
        if score is not None:
            return score

    logger.info(f"No recognized license for {owner}/{repo}")
    return 0.0


# --- Good Pinning Practice ---

PINNED_PATTERNS = [
    re.compile(r"^~(\d+)\.(\d+)(?:\.\d+)?$"),  # ~1.2.3
    re.compile(r"^\^(\d+)\.(\d+)$"),  # ^1.2
    re.compile(r"^(\d+)\.(\d+)(?:\.\d+)?$"),  # 1.2.3
]


def is_pinned_to_major_minor(constraint: str) -> bool:
    """Return True if a constraint fixes at least the major and minor version."""
    return any(pattern.match(constraint) for pattern in PINNED_PATTERNS)


def pinned_fraction(dependencies: dict[str, object]) -> float:
    """Fraction of dependencies pinned to a major.minor version (1.0 if none)."""
    if not dependencies:
        return 1.0
    pinned = sum(
        1
        for constraint in dependencies.values()
        if isinstance(constraint, str) and is_pinned_to_major_minor(constraint)
    )
    return pinned / len(dependencies)


async def good_pinning_practice(owner: str, repo: str, context: RepoContext) -> float:
    """Score the fraction of package.json dependencies pinned to major.minor."""
    package_json = await context.fetcher.fetch_file_content(owner, repo, "package.json")
    if package_json is None:
        logger.info(f"No package.json in {owner}/{repo}")
        return 0.0

    manifest = json.loads(package_json)
    return pinned_fraction(manifest.get("dependencies") or {})


# --- Pull Request ---

REVIEW_SAMPLE_SIZE = 30


async def pull_request(owner: str, repo: str, context: RepoContext) -> float:
    """Score the fraction of recently merged pull requests that were reviewed."""
    merged = await context.fetcher.fetch_merged_pulls(owner, repo, limit=REVIEW_SAMPLE_SIZE)
    if not merged:
        return 0.0

    reviewed = 0
    for pr in merged:
        reviews = await context.fetcher.fetch_pull_reviews(owner, repo, pr["number"])
        if any(review.get("state") == "APPROVED" for review in reviews):
            reviewed += 1
    return reviewed / len(merged)


DEFAULT_SCORERS: dict[str, Scorer] = {
    "BusFactor": bus_factor,
    "Correctness": correctness,
    "RampUp": ramp_up,
    "ResponsiveMaintainer": responsive_maintainer,
    "License": license_score,
    "GoodPinningPractice": good_pinning_practice,
    "PullRequest": pull_request,
}
