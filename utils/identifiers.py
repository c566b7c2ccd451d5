"""Identifier normalization.

The catalog has been authored under several identifier conventions over time
(24-hex keys, ``MOD-1.1`` style codes, ``module_1.1`` legacy ids, slugs). Every
lookup in the progression engine goes through :func:`normalize_identifier`,
which expands a raw value into the deterministic set of spellings any of those
conventions could have produced. Over-generating variants is deliberate: a
missed match locks a learner out, while a spurious one is logged and traced by
the matching layer.
"""

import re
from collections.abc import Mapping

IDENTITY_FIELDS = (
    "id",
    "_id",
    "code",
    "track_code",
    "module_code",
    "lesson_code",
    "slug",
    "legacy_id",
)

# Recognized code prefixes and the canonical prefix they are rewritten to
CANONICAL_PREFIXES = {
    "module": "module",
    "mod": "module",
    "track": "track",
    "trk": "track",
    "lesson": "lesson",
    "les": "lesson",
}

_PREFIX_RE = re.compile(r"^(module|mod|track|trk|lesson|les)(?:[\s_\-.]+|(?=\d))(.+)$")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def _joined(value, separator):
    return _NON_ALNUM_RE.sub(separator, value).strip(separator)


def slugify(value):
    """``"Intro to Phishing!"`` -> ``"intro_to_phishing"``."""
    return _joined(str(value or "").lower(), "_")


def _scalar_variants(raw, kind=None):
    lower = raw.lower()
    condensed = _NON_ALNUM_RE.sub("", lower)
    underscored = _joined(lower, "_")
    hyphenated = _joined(lower, "-")

    variants = [raw, lower, raw.upper(), condensed, underscored, hyphenated]

    match = _PREFIX_RE.match(lower)
    if match:
        canonical = CANONICAL_PREFIXES[match.group(1)]
        remainder = match.group(2).strip()
        remainder_underscored = _joined(remainder, "_")
        remainder_hyphenated = _joined(remainder, "-")
        remainder_condensed = _NON_ALNUM_RE.sub("", remainder)
        variants.extend([
            f"{canonical}_{remainder}",
            f"{canonical}_{remainder_underscored}",
            f"{canonical}-{remainder_hyphenated}",
            f"{canonical}{remainder_condensed}",
        ])
    elif kind and underscored:
        variants.extend([
            f"{kind}_{lower}",
            f"{kind}_{underscored}",
            f"{kind}-{hyphenated}",
            f"{kind}{condensed}",
        ])
        if kind == "track":
            # legacy track ids were often just the first word of the track name
            first_segment = underscored.split("_")[0]
            variants.extend([first_segment, f"track_{first_segment}"])

    return variants


def _collect(value, kind, out, visited):
    if value is None or isinstance(value, bool):
        return

    if isinstance(value, (str, int, float)):
        raw = str(value).strip()
        if raw:
            out.extend(_scalar_variants(raw, kind))
        return

    marker = id(value)
    if marker in visited:
        return
    visited.add(marker)

    if isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            _collect(item, kind, out, visited)
        return

    for field in IDENTITY_FIELDS:
        if isinstance(value, Mapping):
            field_value = value.get(field)
        else:
            field_value = getattr(value, field, None)
        _collect(field_value, kind, out, visited)


def normalize_identifier(value, kind=None):
    """Expand ``value`` into its ordered, de-duplicated identifier variants.

    ``value`` may be a scalar (key, code, slug, order number), a mapping or an
    object carrying the :data:`IDENTITY_FIELDS`, or a list of those. Nested
    references are followed and a visited set stops cycles. ``kind`` is one of
    ``"track"``, ``"module"`` or ``"lesson"`` and adds the canonical prefixed
    spellings for values that carry no recognized prefix of their own.

    The result is a tuple so that callers scanning lookup maps always try the
    variants in the same order. ``None``, booleans and blank strings produce an
    empty tuple.
    """
    variants = []
    _collect(value, kind, variants, set())
    return tuple(dict.fromkeys(v for v in variants if v))


def variants_intersect(left, right, kind=None):
    return not set(normalize_identifier(left, kind)).isdisjoint(normalize_identifier(right, kind))
