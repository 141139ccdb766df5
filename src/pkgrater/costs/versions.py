"""Version constraint matching.

Supported constraint forms against a dot-separated ``major.minor.patch``
version string:

- exact: ``4.17.1`` matches only itself
- caret: ``^4`` matches any version with major component ``4``
- tilde: ``~6.0.2`` matches ``6.0.x`` where ``x >= 2``
- range: ``5.0.0-5.2.0`` matches versions between the bounds, inclusive
- wildcard: ``*``, ``x``, ``latest`` or an empty constraint match anything

Range bounds are compared as plain strings, not by semver precedence, so
bounds with different digit counts (``9.0.0`` vs ``10.0.0``) do not order
numerically.

These forms apply to versions already in the package store. Versions
published on the registry are selected with npm range semantics through
``pick_npm_version``.
"""

from collections.abc import Iterable

from semantic_version import NpmSpec, Version

WILDCARDS = frozenset({"", "*", "x", "X", "latest"})


def _parts(version: str, size: int = 3) -> list[str]:
    parts = version.strip().split(".")
    return parts + ["0"] * (size - len(parts))


def _compare_part(left: str, right: str) -> int:
    if left.isdigit() and right.isdigit():
        a, b = int(left), int(right)
    else:
        a, b = left, right
    return (a > b) - (a < b)


def satisfies_caret(version: str, constraint: str) -> bool:
    """Check a version against ``^constraint`` (same major component)."""
    return _parts(version)[0] == _parts(constraint)[0]


def satisfies_tilde(version: str, constraint: str) -> bool:
    """Check a version against ``~constraint``.

    Major and minor must be equal and the patch must be at least the
    constraint's patch. A missing patch counts as ``0``.
    """
    major, minor, patch = _parts(version)[:3]
    want_major, want_minor, want_patch = _parts(constraint)[:3]
    if major != want_major or minor != want_minor:
        return False
    return _compare_part(patch, want_patch) >= 0


def satisfies_range(version: str, minimum: str, maximum: str) -> bool:
    """Check ``minimum <= version <= maximum`` using string comparison."""
    return minimum <= version <= maximum


def _split_range(constraint: str) -> tuple[str, str] | None:
    bounds = [bound.strip() for bound in constraint.split("-")]
    if len(bounds) != 2 or not all(bounds):
        return None
    return bounds[0], bounds[1]


def is_version_match(version: str, constraint: str) -> bool:
    """Return True if ``version`` satisfies ``constraint``."""
    constraint = constraint.strip()
    if version == constraint or constraint in WILDCARDS:
        return True

    if constraint.startswith("^"):
        return satisfies_caret(version, constraint[1:])
    if constraint.startswith("~"):
        return satisfies_tilde(version, constraint[1:])

    bounds = _split_range(constraint)
    if bounds is not None:
        return satisfies_range(version, *bounds)

    return False


def version_key(version: str) -> tuple[tuple[int, str], ...]:
    """Sort key ordering numeric components numerically.

    Non-numeric components (``0-beta``) sort below any numeric one.
    """
    return tuple((int(part), "") if part.isdigit() else (-1, part) for part in version.split("."))


def pick_version(candidates: Iterable[str], constraint: str) -> str | None:
    """Pick the highest candidate version satisfying ``constraint``.

    Returns:
        The chosen version, or None if nothing matches.
    """
    matching = [version for version in candidates if is_version_match(version, constraint)]
    return max(matching, key=version_key, default=None)


def pick_npm_version(candidates: Iterable[str], constraint: str) -> str | None:
    """Pick the highest published version satisfying an npm range.

    Accepts everything npm does for registry ranges: comparators
    (``>=1.0.0 <2.0.0``), x-ranges (``1.x``), hyphen ranges
    (``1.0.0 - 2.0.0``) and unions (``^1 || ^2``). Prereleases only match
    ranges that name a prerelease of the same version. Unparsable candidate
    versions are ignored; an unparsable constraint falls back to
    ``pick_version``.
    """
    candidates = list(candidates)
    expression = constraint.strip()
    if expression in WILDCARDS:
        expression = "*"

    try:
        spec = NpmSpec(expression)
    except ValueError:
        return pick_version(candidates, constraint)

    versions = []
    for candidate in candidates:
        try:
            versions.append(Version(candidate))
        except ValueError:
            continue

    best = spec.select(versions)
    return str(best) if best is not None else None
