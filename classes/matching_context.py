"""Per-operation alias lookup between catalog entities and a learner's progress.

A context is built once per learner-facing operation and thrown away after it;
it is never cached across requests. Lookups try the identifier's own variants
against the progress map first, then resolve the identifier to a catalog
entity and retry with the aliases that entity owns. An alias lost to another
entity in a collision never leads to that entity's progress.
"""

import logging
from typing import NamedTuple

from classes.catalog_store import CatalogStore
from models.lesson_progress import LessonProgress
from models.lessons import Lesson
from models.module_progress import ModuleProgress
from models.modules import Module
from models.track_progress import TrackProgress
from models.tracks import Track
from utils.aliases import (
    build_lesson_aliases,
    build_module_aliases,
    build_track_aliases,
    track_reference_variants,
)
from utils.identifiers import normalize_identifier
from utils.helpers import utcnow
from utils.statuses import COMPLETED, LOCKED, NOT_STARTED, UNLOCKED

logger = logging.getLogger(__name__)

# (kind, owner, rejected) triples already reported at warning level in this process
_REPORTED_COLLISIONS = set()


class TrackMatch(NamedTuple):
    track_progress: TrackProgress = None
    track: Track = None


class ModuleMatch(NamedTuple):
    module_progress: ModuleProgress = None
    module: Module = None


class MatchTrace(NamedTuple):
    identifier: str
    alias: str
    path: str  # 'progress' for a direct hit, 'entity' for the second pass


class AliasCollision(NamedTuple):
    alias: str
    owner: str
    rejected: str


def _entity_key(entity):
    return str(getattr(entity, "id", entity))


def _same_entity(left, right):
    if left is right:
        return True
    return getattr(left, "id", None) is not None and _entity_key(left) == _entity_key(right)


class _AliasContext:
    kind = None
    match_type = None

    def __init__(self, entities, alias_builder):
        self.entities = list(entities)
        self.alias_builder = alias_builder
        self.alias_map = {}
        self.progress_map = {}
        self.collisions = []
        self.trace = []
        for entity in self.entities:
            self.register_entity(entity)

    def register_entity(self, entity):
        for alias in self.alias_builder(entity):
            owner = self.alias_map.setdefault(alias, entity)
            if owner is not entity:
                self._record_collision(alias, owner, entity)

    def _record_collision(self, alias, owner, rejected):
        collision = AliasCollision(alias, _entity_key(owner), _entity_key(rejected))
        self.collisions.append(collision)
        reported = (self.kind, collision.owner, collision.rejected)
        if reported in _REPORTED_COLLISIONS:
            logger.debug("%s alias collision: %r owned by %s, ignored for %s", self.kind, alias,
                         collision.owner, collision.rejected)
            return
        _REPORTED_COLLISIONS.add(reported)
        logger.warning(
            "%s alias collision: %r already owned by %s, ignored for %s",
            self.kind, alias, collision.owner, collision.rejected,
        )

    def _record_trace(self, identifier, alias, path):
        entry = MatchTrace(str(_entity_key(identifier)), alias, path)
        self.trace.append(entry)
        logger.debug("%s match %s via %r (%s)", self.kind, entry.identifier, alias, path)

    def owns(self, entity, alias):
        """True unless ``alias`` belongs to a catalog entity other than ``entity``."""
        owner = self.alias_map.get(alias)
        return owner is None or _same_entity(owner, entity)

    def resolve_entity(self, identifier):
        """Catalog entity for ``identifier``; alias map first, then direct key.

        A Track or Module passed in resolves to the registered entity with the
        same key, or to itself, never to whoever owns one of its aliases.
        """
        if identifier is None:
            return None
        if isinstance(identifier, (Track, Module)):
            for entity in self.entities:
                if _same_entity(entity, identifier):
                    return entity
            return identifier
        for variant in normalize_identifier(identifier, self.kind):
            if variant in self.alias_map:
                return self.alias_map[variant]
        key = str(identifier).strip()
        for entity in self.entities:
            if str(entity.id) == key:
                return entity
        return None

    def attach(self, entry, entity=None):
        """Register ``entry`` under its own identifier and the aliases ``entity`` owns."""
        stored = normalize_identifier(self._stored_identifier(entry), self.kind)
        if entity is None:
            variants = dict.fromkeys(stored)
        else:
            for alias in self.alias_builder(entity):
                self.alias_map.setdefault(alias, entity)
            variants = {
                alias: None
                for alias in stored + self.alias_builder(entity)
                if self.owns(entity, alias)
            }
        match = self.match_type(entry, entity)
        for alias in variants:
            self.progress_map.setdefault(alias, match)

    def _lookup_variants(self, identifier):
        if not isinstance(identifier, (Track, Module)):
            return normalize_identifier(identifier, self.kind)
        # the entity's own key and code go before the loose name-derived variants
        code = getattr(identifier, f"{self.kind}_code", None)
        return tuple(dict.fromkeys(
            normalize_identifier(identifier.id, self.kind)
            + normalize_identifier(code, self.kind)
            + normalize_identifier(identifier, self.kind)
        ))

    def resolve_progress(self, identifier):
        if identifier is None:
            return self.match_type()

        target = self.resolve_entity(identifier)
        for variant in self._lookup_variants(identifier):
            if target is not None and not self.owns(target, variant):
                continue
            match = self.progress_map.get(variant)
            if match is None:
                continue
            if target is not None and match[1] is not None and not _same_entity(match[1], target):
                continue
            self._record_trace(identifier, variant, "progress")
            return match

        if target is None:
            return self.match_type()

        for alias in self.alias_builder(target):
            if not self.owns(target, alias):
                continue
            match = self.progress_map.get(alias)
            if match is None:
                continue
            if match[1] is not None and not _same_entity(match[1], target):
                logger.debug(
                    "%s %s skipped progress of %s on alias %r",
                    self.kind, _entity_key(target), _entity_key(match[1]), alias,
                )
                continue
            self._record_trace(identifier, alias, "entity")
            return self.match_type(match[0], target)

        return self.match_type()

    def _stored_identifier(self, entry):
        raise NotImplementedError


class TrackMatchingContext(_AliasContext):
    kind = "track"
    match_type = TrackMatch

    def __init__(self, tracks):
        super().__init__(tracks, build_track_aliases)

    def _stored_identifier(self, entry):
        return entry.track_id

    @property
    def tracks(self):
        return self.entities

    def resolve_track(self, identifier):
        if isinstance(identifier, Track):
            return identifier
        return self.resolve_entity(identifier)

    def ensure_track_progress(self, progress, identifier, status=UNLOCKED):
        """Get or append the TrackProgress for ``identifier``."""
        track_progress, track = self.resolve_progress(identifier)
        if track is None:
            track = self.resolve_track(identifier)

        if track_progress is None:
            track_progress = TrackProgress(
                track_id=track.id if track is not None else str(identifier),
                status=status,
                overall_score=0.0,
                started_at=utcnow(),
            )
            progress.tracks_progress.append(track_progress)
            self.attach(track_progress, track)
            logger.info("Added track progress %s for learner %s", track_progress.track_id, progress.learner_id)

        return TrackMatch(track_progress, track)


class ModuleMatchingContext(_AliasContext):
    """The same two-map lookup, scoped to one TrackProgress's modules."""

    kind = "module"
    match_type = ModuleMatch

    def __init__(self, track_progress, modules):
        super().__init__(modules, build_module_aliases)
        self.track_progress = track_progress
        for module_progress in track_progress.modules_progress if track_progress is not None else []:
            self.attach(module_progress, self.resolve_entity(module_progress.module_id))

    def _stored_identifier(self, entry):
        return entry.module_id

    @property
    def modules(self):
        return self.entities

    def index_of(self, module):
        """Position of ``module`` among this context's ordered modules, or -1."""
        aliases = set(build_module_aliases(module))
        for index, candidate in enumerate(self.entities):
            if candidate is module or candidate.id == module.id:
                return index
        for index, candidate in enumerate(self.entities):
            if not aliases.isdisjoint(build_module_aliases(candidate)):
                return index
        return -1

    def ensure_module_progress(self, module, status):
        module_progress = self.resolve_progress(module).module_progress
        if module_progress is None:
            module_progress = ModuleProgress(
                module_id=module.id,
                status=status,
                best_quiz_score=0.0,
                best_lab_score=0.0,
                started_at=utcnow() if status != LOCKED else None,
            )
            self.track_progress.modules_progress.append(module_progress)
            self.attach(module_progress, module)
        return module_progress


def prepare_track_matching_context(progress, catalog=CatalogStore):
    """Build the track-level context for one learner-facing operation."""
    context = TrackMatchingContext(catalog.find_active_tracks())
    for track_progress in progress.tracks_progress if progress is not None else []:
        context.attach(track_progress, context.resolve_track(track_progress.track_id))
    return context


def find_track_progress_by_identifier(context, identifier):
    if context is None:
        return TrackMatch()
    return context.resolve_progress(identifier)


def find_module_progress_by_identifier(track_progress, identifier, modules=None):
    """ModuleProgress in ``track_progress`` matching ``identifier``, or None."""
    if track_progress is None or identifier is None:
        return None
    if modules is None:
        module = identifier if isinstance(identifier, Module) else CatalogStore.find_module_by_identifier(identifier)
        modules = [module] if module is not None else []
    context = ModuleMatchingContext(track_progress, modules)
    return context.resolve_progress(identifier).module_progress


def are_all_track_modules_completed(track_progress, track, catalog=CatalogStore):
    if track_progress is None or track is None:
        return False
    modules = catalog.find_active_modules_by_track_aliases(track_reference_variants(track))
    if not modules:
        return False
    context = ModuleMatchingContext(track_progress, modules)
    for module in modules:
        module_progress = context.resolve_progress(module).module_progress
        if module_progress is None or module_progress.status != COMPLETED:
            return False
    return True


def find_lesson_progress(module_progress, lesson):
    """LessonProgress in ``module_progress`` for a Lesson entity or identifier."""
    if module_progress is None or lesson is None:
        return None
    if isinstance(lesson, (Lesson, dict)):
        aliases = set(build_lesson_aliases(lesson))
    else:
        aliases = set(normalize_identifier(lesson, "lesson"))
    for lesson_progress in module_progress.lessons_progress:
        if not aliases.isdisjoint(normalize_identifier(lesson_progress.lesson_id, "lesson")):
            return lesson_progress
    return None


def new_lesson_progress(lesson, status):
    return LessonProgress(
        lesson_id=lesson.id,
        status=status,
        time_spent=0,
        last_position=0,
        completed_content_items=[],
        started_at=utcnow() if status != NOT_STARTED else None,
    )
