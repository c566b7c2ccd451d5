from models.lessons import Lesson
from models.modules import Module
from models.tracks import Track
from utils.aliases import (
    build_lesson_aliases,
    build_module_aliases,
    build_track_aliases,
    module_reference_variants,
)
from utils.identifiers import normalize_identifier

ACTIVE = "active"


def _alias_map(entities, alias_builder):
    alias_map = {}
    for entity in entities:
        for alias in alias_builder(entity):
            alias_map.setdefault(alias, entity)
    return alias_map


def _first_alias_owner(entities, identifier, alias_builder, kind):
    alias_map = _alias_map(entities, alias_builder)
    for variant in normalize_identifier(identifier, kind):
        if variant in alias_map:
            return alias_map[variant]
    return None


def _single_track_modules(modules, aliases):
    """Drop modules whose ``track_id`` belongs to a track other than the queried one.

    Loose aliases such as a shared first name word can match another track's
    children in the ``IN`` query; the first writer of each alias keeps it.
    """
    if not modules:
        return modules
    tracks = CatalogStore.find_active_tracks()
    alias_map = _alias_map(tracks, build_track_aliases)

    def owner_of(identifier):
        key = str(identifier).strip()
        for track in tracks:
            if track.id == key or track.track_code == key:
                return track
        for variant in normalize_identifier(identifier, "track"):
            if variant in alias_map:
                return alias_map[variant]
        return None

    queried = owner_of(aliases[0])
    if queried is None:
        return modules
    return [module for module in modules if owner_of(module.track_id) in (None, queried)]


class CatalogStore:
    """Read-only access to Tracks, Modules and Lessons.

    Reads are not cached; every progression operation sees the catalog as it
    is in the database at that moment.
    """

    @staticmethod
    def find_active_tracks():
        return Track.query.filter_by(status=ACTIVE).order_by(Track.order, Track.id).all()

    @staticmethod
    def find_track_by_identifier(identifier):
        """Resolve a track by primary key, then code, then any alias."""
        if identifier is None:
            return None
        if isinstance(identifier, Track):
            return identifier
        key = str(identifier).strip()
        track = Track.query.filter_by(id=key, status=ACTIVE).first()
        if track:
            return track
        track = Track.query.filter_by(track_code=key, status=ACTIVE).first()
        if track:
            return track
        return _first_alias_owner(CatalogStore.find_active_tracks(), identifier, build_track_aliases, "track")

    @staticmethod
    def find_active_modules():
        return Module.query.filter_by(status=ACTIVE).order_by(Module.order, Module.id).all()

    @staticmethod
    def find_active_modules_by_track_aliases(aliases):
        aliases = [alias for alias in aliases or () if alias]
        if not aliases:
            return []
        modules = (
            Module.query
            .filter(Module.track_id.in_(aliases), Module.status == ACTIVE)
            .order_by(Module.order, Module.id)
            .all()
        )
        return _single_track_modules(modules, aliases)

    @staticmethod
    def find_next_module(track_aliases, order):
        aliases = [alias for alias in track_aliases or () if alias]
        if not aliases:
            return None
        following = (
            Module.query
            .filter(Module.track_id.in_(aliases), Module.status == ACTIVE, Module.order > order)
            .order_by(Module.order, Module.id)
            .all()
        )
        following = _single_track_modules(following, aliases)
        return following[0] if following else None

    @staticmethod
    def find_module_by_id(module_id):
        if module_id is None:
            return None
        return Module.query.filter_by(id=str(module_id).strip()).first()

    @staticmethod
    def find_module_by_identifier(identifier):
        if identifier is None:
            return None
        if isinstance(identifier, Module):
            return identifier
        key = str(identifier).strip()
        module = Module.query.filter_by(id=key).first()
        if module:
            return module
        module = Module.query.filter_by(module_code=key).first()
        if module:
            return module
        return _first_alias_owner(CatalogStore.find_active_modules(), identifier, build_module_aliases, "module")

    @staticmethod
    def find_module_for_lesson(lesson):
        if lesson is None:
            return None
        return CatalogStore.find_module_by_identifier(lesson.module_id)

    @staticmethod
    def find_lesson_by_id(lesson_id):
        if lesson_id is None:
            return None
        return Lesson.query.filter_by(id=str(lesson_id).strip()).first()

    @staticmethod
    def find_lesson_by_identifier(identifier, active_only=True):
        if identifier is None:
            return None
        if isinstance(identifier, Lesson):
            return identifier
        key = str(identifier).strip()
        query = Lesson.query.filter_by(status=ACTIVE) if active_only else Lesson.query
        lesson = query.filter_by(id=key).first()
        if lesson:
            return lesson
        lesson = query.filter_by(lesson_code=key).first()
        if lesson:
            return lesson
        return _first_alias_owner(query.order_by(Lesson.order, Lesson.id).all(), identifier, build_lesson_aliases, "lesson")

    @staticmethod
    def find_active_lessons_by_module(module):
        return (
            Lesson.query
            .filter(Lesson.module_id.in_(module_reference_variants(module)), Lesson.status == ACTIVE)
            .order_by(Lesson.order, Lesson.id)
            .all()
        )

    @staticmethod
    def find_next_lesson(module, order):
        return (
            Lesson.query
            .filter(
                Lesson.module_id.in_(module_reference_variants(module)),
                Lesson.status == ACTIVE,
                Lesson.order > order,
            )
            .order_by(Lesson.order, Lesson.id)
            .first()
        )
