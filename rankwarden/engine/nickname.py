"""
rankwarden.engine.nickname — Nickname Composer
===============================================

Nicknames carry badge glyphs as a prefix::

    "🐣 💬 Ada"   → base name "Ada", badges NEWBIE + TEXT_LEADER

Composition always starts from the *base* name: every known glyph is
peeled off both ends (so manually reordered or stale badges disappear),
then the currently applicable badges are re-prefixed in canonical order.
Stripping works on the closed :class:`~rankwarden.constants.Badge` set
rather than on a text pattern.
"""

from __future__ import annotations

from collections.abc import Iterable

from rankwarden.constants import BADGE_GLYPHS, MAX_NICKNAME_LENGTH, STATUS_BADGES, Badge

# Longest glyph first so multi-codepoint glyphs never lose to a prefix of themselves
_GLYPHS: tuple[str, ...] = tuple(sorted(BADGE_GLYPHS, key=len, reverse=True))


def _strip_once(name: str) -> str:
    for glyph in _GLYPHS:
        if name == glyph:
            return ""
        if name.startswith(glyph + " "):
            return name[len(glyph) + 1:].lstrip()
        if name.endswith(" " + glyph):
            return name[: -len(glyph) - 1].rstrip()
    return name


def strip_badges(name: str | None) -> str:
    """Remove every run of known badge glyphs from both ends of *name*."""
    if not name:
        return ""
    current = name.strip()
    while True:
        stripped = _strip_once(current)
        if stripped == current:
            return current
        current = stripped


def canonical_badges(badges: Iterable[Badge]) -> list[Badge]:
    """Deduplicate and order *badges*; at most one status badge survives."""
    unique = set(badges)
    ordered = sorted(unique, key=lambda b: b.order)
    status = [b for b in ordered if b in STATUS_BADGES]
    if len(status) > 1:
        # NEWBIE outranks GRADUATE while both roles are (briefly) held
        ordered = [b for b in ordered if b not in status[1:]]
    return ordered


def compose_nickname(
    current: str | None,
    badges: Iterable[Badge],
    max_length: int = MAX_NICKNAME_LENGTH,
) -> str:
    """Canonical display name for *current* carrying exactly *badges*.

    The result never exceeds *max_length*; when it would, the base name's
    tail is cut, never a glyph.  The function is idempotent:
    ``compose(compose(n, b), b) == compose(n, b)``.
    """
    prefix = " ".join(b.glyph for b in canonical_badges(badges))
    base = strip_badges(current)

    if not prefix:
        return strip_badges(base[:max_length])

    room = max_length - len(prefix) - 1
    if room <= 0:
        return prefix[:max_length]
    # Re-strip after the cut: truncation can expose a glyph at the new tail
    base = strip_badges(base[:room])
    if not base:
        return prefix
    return f"{prefix} {base}"


def badges_for_roles(
    role_names: Iterable[str], badge_roles: dict[Badge, str]
) -> set[Badge]:
    """Badges implied by a member's role names.

    *badge_roles* maps each badge to the name of its marker role.
    """
    held = set(role_names)
    return {badge for badge, role_name in badge_roles.items() if role_name in held}
