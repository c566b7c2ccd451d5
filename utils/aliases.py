from models.lessons import Lesson
from models.modules import Module
from models.tracks import Track
from utils.identifiers import normalize_identifier, slugify


def _field(entity, name):
    if isinstance(entity, dict):
        return entity.get(name)
    return getattr(entity, name, None)


class _AliasSet:
    def __init__(self, kind):
        self.kind = kind
        self._aliases = {}

    def push(self, value):
        for variant in normalize_identifier(value, self.kind):
            self._aliases.setdefault(variant, None)

    def freeze(self):
        return tuple(self._aliases)


def build_track_aliases(track):
    """Every spelling under which ``track`` may have been referenced."""
    aliases = _AliasSet("track")
    if track is None:
        return aliases.freeze()

    for name in ("id", "_id", "track_code", "code", "legacy_id", "slug"):
        aliases.push(_field(track, name))

    name = _field(track, "name")
    if name:
        name_slug = slugify(name)
        aliases.push(name_slug)
        aliases.push(f"track_{name_slug}")
        segments = [segment for segment in name_slug.split("_") if segment]
        if segments:
            aliases.push(f"track_{segments[0]}")
            aliases.push(segments[0])

    order = _field(track, "order")
    if isinstance(order, int) and not isinstance(order, bool):
        aliases.push(f"track_{order}")
        aliases.push(f"track{order}")

    return aliases.freeze()


def build_module_aliases(module):
    aliases = _AliasSet("module")
    if module is None:
        return aliases.freeze()

    for name in ("id", "_id", "module_code", "code", "legacy_id", "slug"):
        aliases.push(_field(module, name))

    name = _field(module, "name")
    if name:
        aliases.push(slugify(name))

    return aliases.freeze()


def build_lesson_aliases(lesson):
    aliases = _AliasSet("lesson")
    if lesson is None:
        return aliases.freeze()

    for name in ("id", "_id", "lesson_code", "code", "legacy_id", "slug"):
        aliases.push(_field(lesson, name))

    return aliases.freeze()


def build_aliases(entity):
    """Dispatch to the alias builder for the entity's catalog type."""
    if isinstance(entity, Track):
        return build_track_aliases(entity)
    if isinstance(entity, Module):
        return build_module_aliases(entity)
    if isinstance(entity, Lesson):
        return build_lesson_aliases(entity)
    raise TypeError(f"No alias builder for {type(entity).__name__}")


def _reference_variants(entity, kind, fields):
    variants = _AliasSet(kind)
    if entity is not None:
        for name in fields:
            variants.push(_field(entity, name))
    return variants.freeze()


def track_reference_variants(track):
    """Values ``Module.track_id`` may hold for ``track``.

    Narrower than :func:`build_track_aliases`: display-name and order tokens are
    left out so that querying modules never picks up another track's children.
    """
    return _reference_variants(track, "track", ("id", "_id", "track_code", "code", "legacy_id", "slug"))


def module_reference_variants(module):
    """Values ``Lesson.module_id`` may hold for ``module``."""
    return _reference_variants(module, "module", ("id", "_id", "module_code", "code", "legacy_id", "slug"))
