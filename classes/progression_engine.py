import logging
from typing import List, NamedTuple

from classes.catalog_store import CatalogStore
from classes.matching_context import (
    ModuleMatchingContext,
    are_all_track_modules_completed,
    find_lesson_progress,
    find_module_progress_by_identifier,
    new_lesson_progress,
    prepare_track_matching_context,
)
from classes.prerequisites import PrerequisiteResolver
from classes.progress_store import ProgressStore
from models.learner_progress import LearnerProgress
from models.lesson_progress import LessonProgress
from models.lessons import Lesson
from models.module_progress import ModuleProgress
from models.modules import Module
from models.track_progress import TrackProgress
from models.tracks import Track
from utils.aliases import track_reference_variants
from utils.errors import ModuleLocked, NotFound, PrerequisitesNotMet, TrackNotStarted
from utils.helpers import utcnow
from utils.identifiers import normalize_identifier
from utils.statuses import (
    COMPLETED,
    IN_PROGRESS,
    LOCKED,
    NOT_STARTED,
    UNLOCKED,
    advance_status,
    is_locked,
)

logger = logging.getLogger(__name__)


class LessonProgressChain(NamedTuple):
    progress: LearnerProgress
    track_progress: TrackProgress = None
    module_progress: ModuleProgress = None
    lesson_progress: LessonProgress = None
    module: Module = None
    lesson: Lesson = None
    track: Track = None


class TrackStart(NamedTuple):
    progress: LearnerProgress
    track_progress: TrackProgress
    track: Track
    modules: List[Module]


class ModuleLocation(NamedTuple):
    progress: LearnerProgress
    track_progress: TrackProgress
    module_progress: ModuleProgress
    module: Module
    track: Track
    track_context: object


class ProgressionEngine:
    """Lock/unlock state machine over one learner's progress aggregate.

    Public operations take ``persist``; when False the caller owns the save,
    which lets a workflow fold several engine calls into one write.
    """

    def __init__(self, catalog=CatalogStore, store=ProgressStore):
        self.catalog = catalog
        self.store = store

    # --- catalog resolution -------------------------------------------

    def _resolve_lesson(self, lesson_id):
        lesson = self.catalog.find_lesson_by_identifier(lesson_id)
        if lesson is None:
            raise NotFound("Lesson not found", lesson_id=str(lesson_id))
        module = self.catalog.find_module_for_lesson(lesson)
        if module is None:
            raise NotFound("Module not found", module_id=lesson.module_id)
        track = self._resolve_track_for_module(module)
        return lesson, module, track

    def _resolve_track_for_module(self, module):
        track = self.catalog.find_track_by_identifier(module.track_id)
        if track is None:
            raise NotFound("Track not found", track_id=module.track_id)
        return track

    def _track_modules(self, track, module=None):
        aliases = dict.fromkeys(track_reference_variants(track))
        if module is not None:
            aliases.update(dict.fromkeys(normalize_identifier(module.track_id, "track")))
        return self.catalog.find_active_modules_by_track_aliases(tuple(aliases))

    # --- state helpers ------------------------------------------------

    @staticmethod
    def _unlock(module_progress):
        if advance_status(module_progress, UNLOCKED):
            module_progress.started_at = module_progress.started_at or utcnow()
            logger.info("Unlocked module %s", module_progress.module_id)
            return True
        return False

    def recheck_module_locks(self, track_progress, modules, module_context=None):
        """Open every locked module whose gate is satisfied.

        Runs at the top of each resolution path: the first module is always
        eligible and any later one is eligible once its predecessor is
        completed. Returns the entries that were unlocked.
        """
        context = module_context or ModuleMatchingContext(track_progress, modules)
        healed = []
        previous = None
        for index, module in enumerate(modules):
            module_progress = context.resolve_progress(module).module_progress
            if module_progress is not None and is_locked(module_progress.status):
                if index == 0 or (previous is not None and previous.status == COMPLETED):
                    if self._unlock(module_progress):
                        healed.append(module_progress)
            previous = module_progress
        return healed

    def _resolve_module_progress(self, module, modules, module_context):
        index = module_context.index_of(module)
        if index == -1:
            raise NotFound("Module is not active in its track", module_id=module.id)

        module_progress = module_context.resolve_progress(module).module_progress
        if module_progress is None:
            previous = module_context.resolve_progress(modules[index - 1]).module_progress if index > 0 else None
            can_unlock = index == 0 or (previous is not None and previous.status == COMPLETED)
            if not can_unlock:
                raise ModuleLocked("Module is locked", module_id=module.id)
            module_progress = module_context.ensure_module_progress(module, UNLOCKED)

        if is_locked(module_progress.status):
            raise ModuleLocked("Module is locked", module_id=module.id)
        return module_progress

    def _track_prerequisites_met(self, track, context):
        unmet = []
        for prerequisite in track.prerequisites or []:
            track_progress = context.resolve_progress(prerequisite).track_progress
            if track_progress is None or track_progress.status != COMPLETED:
                unmet.append(str(prerequisite))
        return unmet

    def _begin_track(self, progress, track, context):
        unmet = self._track_prerequisites_met(track, context)
        if unmet:
            raise PrerequisitesNotMet("Prerequisites not completed", missing=unmet)

        track_progress, _ = context.ensure_track_progress(progress, track, status=UNLOCKED)
        modules = self._track_modules(track)
        module_context = ModuleMatchingContext(track_progress, modules)

        for index, module in enumerate(modules):
            module_progress = module_context.resolve_progress(module).module_progress
            if module_progress is None:
                module_context.ensure_module_progress(module, UNLOCKED if index == 0 else LOCKED)
            elif index == 0 and is_locked(module_progress.status):
                self._unlock(module_progress)

        self.recheck_module_locks(track_progress, modules, module_context)
        advance_status(track_progress, IN_PROGRESS)
        progress.current_track = track.id
        progress.current_module = modules[0].id if modules else None
        logger.info("Learner %s started track %s (%d modules)", progress.learner_id, track.track_code, len(modules))
        return track_progress, modules

    def _locate_track_progress(self, context, module, track):
        track_progress = context.resolve_progress(module.track_id).track_progress
        if track_progress is None:
            track_progress = context.resolve_progress(track).track_progress
        return track_progress

    # --- operations ---------------------------------------------------

    def start_track(self, learner_id, track_id, persist=True):
        track = self.catalog.find_track_by_identifier(track_id)
        if track is None:
            raise NotFound("Track not found", track_id=str(track_id))

        progress = self.store.get_or_create(learner_id)
        context = prepare_track_matching_context(progress, self.catalog)
        track_progress, modules = self._begin_track(progress, track, context)

        if persist:
            self.store.save(progress)
        return TrackStart(progress, track_progress, track, modules)

    def ensure_lesson_progress(self, learner_id, lesson_id=None, persist=True):
        """Make sure the whole Track -> Module -> Lesson chain exists.

        Without ``lesson_id`` only the aggregate is fetched (created on first
        reference). With one, a missing track is started implicitly, the
        module must be unlocked, and the lesson is put in progress on first
        touch. Raises NotFound, PrerequisitesNotMet, TrackNotStarted or
        ModuleLocked.
        """
        if lesson_id is None:
            progress = self.store.get_or_create(learner_id)
            if persist:
                self.store.save(progress)
            return LessonProgressChain(progress)

        lesson, module, track = self._resolve_lesson(lesson_id)
        progress = self.store.get_or_create(learner_id)
        context = prepare_track_matching_context(progress, self.catalog)

        track_progress = self._locate_track_progress(context, module, track)
        if track_progress is None:
            logger.info("Track %s not started for learner %s, starting it", track.track_code, learner_id)
            self._begin_track(progress, track, context)
            track_progress = self._locate_track_progress(context, module, track)
        if track_progress is None:
            raise TrackNotStarted("Please start the track first", track_id=track.id)

        modules = self._track_modules(track, module)
        module_context = ModuleMatchingContext(track_progress, modules)
        self.recheck_module_locks(track_progress, modules, module_context)
        module_progress = self._resolve_module_progress(module, modules, module_context)

        lesson_progress = find_lesson_progress(module_progress, lesson)
        if lesson_progress is None:
            lesson_progress = new_lesson_progress(lesson, IN_PROGRESS)
            module_progress.lessons_progress.append(lesson_progress)

        if persist:
            self.store.save(progress)
        return LessonProgressChain(progress, track_progress, module_progress, lesson_progress, module, lesson, track)

    def start_lesson(self, learner_id, lesson_id, persist=True):
        lesson, module, track = self._resolve_lesson(lesson_id)

        progress = self.store.find_progress_by_learner(learner_id)
        if progress is None:
            raise TrackNotStarted("Please start the track first", track_id=track.id)

        context = prepare_track_matching_context(progress, self.catalog)
        track_progress = self._locate_track_progress(context, module, track)
        if track_progress is None:
            raise TrackNotStarted("Please start the track first", track_id=track.id)

        modules = self._track_modules(track, module)
        module_context = ModuleMatchingContext(track_progress, modules)
        self.recheck_module_locks(track_progress, modules, module_context)
        module_progress = self._resolve_module_progress(module, modules, module_context)

        lesson_progress = find_lesson_progress(module_progress, lesson)
        if lesson_progress is None or lesson_progress.status == NOT_STARTED:
            resolver = PrerequisiteResolver(progress, context, self.catalog)
            unmet = resolver.unmet(lesson.prerequisites)
            if unmet:
                raise PrerequisitesNotMet("Prerequisites not completed", missing=unmet)

        if lesson_progress is None:
            lesson_progress = new_lesson_progress(lesson, IN_PROGRESS)
            module_progress.lessons_progress.append(lesson_progress)
        elif advance_status(lesson_progress, IN_PROGRESS):
            lesson_progress.started_at = lesson_progress.started_at or utcnow()

        progress.current_lesson = lesson.id
        progress.current_module = module.id
        advance_status(module_progress, IN_PROGRESS)
        module_progress.started_at = module_progress.started_at or utcnow()
        advance_status(track_progress, IN_PROGRESS)

        if persist:
            self.store.save(progress)
        return LessonProgressChain(progress, track_progress, module_progress, lesson_progress, module, lesson, track)

    def locate_module(self, learner_id, module_id):
        """Existing, unlocked ModuleProgress for ``module_id``."""
        module = self.catalog.find_module_by_identifier(module_id)
        if module is None:
            raise NotFound("Module not found", module_id=str(module_id))
        track = self._resolve_track_for_module(module)

        progress = self.store.find_progress_by_learner(learner_id)
        if progress is None:
            raise TrackNotStarted("Please start the track first", track_id=track.id)
        context = prepare_track_matching_context(progress, self.catalog)
        track_progress = self._locate_track_progress(context, module, track)
        if track_progress is None:
            raise TrackNotStarted("Please start the track first", track_id=track.id)

        modules = self._track_modules(track, module)
        module_context = ModuleMatchingContext(track_progress, modules)
        self.recheck_module_locks(track_progress, modules, module_context)
        module_progress = self._resolve_module_progress(module, modules, module_context)
        return ModuleLocation(progress, track_progress, module_progress, module, track, context)

    def unlock_next_lesson(self, progress, module, current_lesson, module_progress):
        next_lesson = self.catalog.find_next_lesson(module, current_lesson.order)
        if next_lesson is None:
            return None
        if find_lesson_progress(module_progress, next_lesson) is not None:
            return None

        module_progress.lessons_progress.append(new_lesson_progress(next_lesson, NOT_STARTED))
        progress.current_lesson = next_lesson.id
        logger.info("Unlocked lesson %s for learner %s", next_lesson.lesson_code, progress.learner_id)
        return next_lesson

    def unlock_next_module(self, progress, module, module_progress):
        """Complete ``module`` and open its successor once every lesson is done.

        Modules gated by a quiz or a lab are left for the assessment workflow.
        """
        if not all(lp.status == COMPLETED for lp in module_progress.lessons_progress):
            return None
        if module.has_assessment_gate:
            return None
        return self.complete_module(progress, module, module_progress)

    def complete_module(self, progress, module, module_progress):
        if advance_status(module_progress, COMPLETED):
            module_progress.completed_at = utcnow()
            logger.info("Learner %s completed module %s", progress.learner_id, module.module_code)

        track = self.catalog.find_track_by_identifier(module.track_id)
        if track is None:
            logger.warning("Module %s references unknown track %s", module.module_code, module.track_id)
            return None

        next_module = self.catalog.find_next_module(
            tuple(dict.fromkeys(track_reference_variants(track) + normalize_identifier(module.track_id, "track"))),
            module.order,
        )
        if next_module is None:
            return None

        context = prepare_track_matching_context(progress, self.catalog)
        track_progress = self._locate_track_progress(context, module, track)
        if track_progress is None:
            return None

        module_context = ModuleMatchingContext(track_progress, [next_module])
        next_progress = module_context.resolve_progress(next_module).module_progress
        if next_progress is None:
            module_context.ensure_module_progress(next_module, UNLOCKED)
            logger.info("Unlocked module %s for learner %s", next_module.module_code, progress.learner_id)
        elif not self._unlock(next_progress):
            return None

        progress.current_module = next_module.id
        return next_module

    def complete_track_if_finished(self, track_progress, track):
        if track_progress is None or track_progress.status == COMPLETED:
            return False
        if not self.track_modules_completed(track_progress, track):
            return False
        advance_status(track_progress, COMPLETED)
        track_progress.completed_at = utcnow()
        logger.info("Track %s completed", track.track_code)
        return True

    def track_modules_completed(self, track_progress, track):
        return are_all_track_modules_completed(track_progress, track, self.catalog)

    def find_module_progress(self, progress, module, track=None):
        """Read-only lookup of the learner's ModuleProgress for ``module``."""
        if progress is None or module is None:
            return None
        context = prepare_track_matching_context(progress, self.catalog)
        track_progress = self._locate_track_progress(context, module, track)
        return find_module_progress_by_identifier(track_progress, module)
