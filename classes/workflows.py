import logging

from flask import current_app

from classes.matching_context import find_lesson_progress, prepare_track_matching_context
from classes.progress_store import run_progress_operation
from classes.progression_engine import ProgressionEngine
from models.assessment_attempts import LabAttemptRecord, QuizAttemptRecord
from utils import gamification
from utils.gamification import assessment_xp
from utils.aliases import track_reference_variants
from utils.errors import NotFound
from utils.helpers import utcnow
from utils.identifiers import normalize_identifier
from utils.statuses import COMPLETED, IN_PROGRESS, advance_status

logger = logging.getLogger(__name__)

QUIZ = "quiz"
LAB = "lab"


class ProgressionWorkflows:
    """Learner-facing operations over the progression engine.

    Each public method is one unit of work: it runs through
    ``run_progress_operation`` so a failure rolls the session back and a
    concurrent save is retried from a fresh read.
    """

    def __init__(self, engine=None, gamification_service=None):
        self.engine = engine or ProgressionEngine()
        self.gamification = gamification_service or gamification

    @property
    def catalog(self):
        return self.engine.catalog

    @property
    def store(self):
        return self.engine.store

    def start_track(self, learner_id, track_id):
        return run_progress_operation(self._start_track, learner_id, track_id)

    def start_lesson(self, learner_id, lesson_id):
        return run_progress_operation(self._start_lesson, learner_id, lesson_id)

    def complete_lesson(self, learner_id, lesson_id, time_spent=None):
        return run_progress_operation(self._complete_lesson, learner_id, lesson_id, time_spent)

    def update_lesson_progress(self, learner_id, lesson_id, time_spent=None, last_position=None,
                               completed_content_items=None):
        return run_progress_operation(
            self._update_lesson_progress, learner_id, lesson_id, time_spent, last_position, completed_content_items
        )

    def record_assessment_attempt(self, learner_id, module_id, kind, score, passed, assessment_id=None,
                                  answers=None, time_spent=None):
        return run_progress_operation(
            self._record_assessment_attempt, learner_id, module_id, kind, score, passed, assessment_id,
            answers, time_spent,
        )

    def get_progress(self, learner_id):
        return run_progress_operation(self._get_progress, learner_id)

    def get_next_content(self, learner_id):
        return run_progress_operation(self._get_next_content, learner_id)

    # --- units of work ------------------------------------------------

    def _start_track(self, learner_id, track_id):
        result = self.engine.start_track(learner_id, track_id, persist=False)
        self.store.save(result.progress)
        return {
            "message": "Track started successfully",
            "track": result.track.to_dict(),
            "track_progress": result.track_progress.to_dict(),
            "module_count": len(result.modules),
        }

    def _start_lesson(self, learner_id, lesson_id):
        chain = self.engine.start_lesson(learner_id, lesson_id, persist=False)
        self.gamification.update_streak(chain.progress)
        self.store.save(chain.progress)
        return {
            "message": "Lesson started",
            "lesson": chain.lesson.to_dict(),
            "lesson_progress": chain.lesson_progress.to_dict(),
            "module_status": chain.module_progress.status,
        }

    def _complete_lesson(self, learner_id, lesson_id, time_spent):
        chain = self.engine.ensure_lesson_progress(learner_id, lesson_id, persist=False)
        progress, lesson_progress = chain.progress, chain.lesson_progress

        first_completion = advance_status(lesson_progress, COMPLETED)
        if first_completion:
            lesson_progress.completed_at = utcnow()
        self._record_lesson_time(progress, lesson_progress, time_spent)

        xp_earned = 0
        leveled_up = False
        if first_completion:
            xp_earned = current_app.config.get("LESSON_COMPLETION_XP", 50)
            leveled_up = self.gamification.add_xp(progress, xp_earned)
            logger.info("Learner %s completed lesson %s", learner_id, chain.lesson.lesson_code)

        progress.current_lesson = chain.lesson.id
        progress.current_module = chain.module.id
        next_lesson = self.engine.unlock_next_lesson(progress, chain.module, chain.lesson, chain.module_progress)
        next_module = self.engine.unlock_next_module(progress, chain.module, chain.module_progress)
        track_completed = self.engine.complete_track_if_finished(chain.track_progress, chain.track)

        self.gamification.update_streak(progress)
        self.store.save(progress)

        return {
            "message": "Lesson completed",
            "xp_earned": xp_earned,
            "leveled_up": leveled_up,
            "total_xp": progress.total_xp,
            "level": progress.level,
            "module_status": chain.module_progress.status,
            "track_completed": track_completed,
            "next_lesson_id": next_lesson.id if next_lesson is not None else None,
            "next_module_id": next_module.id if next_module is not None else None,
        }

    def _update_lesson_progress(self, learner_id, lesson_id, time_spent, last_position, completed_content_items):
        chain = self.engine.ensure_lesson_progress(learner_id, lesson_id, persist=False)
        progress, lesson_progress = chain.progress, chain.lesson_progress

        self._record_lesson_time(progress, lesson_progress, time_spent)
        if last_position is not None:
            lesson_progress.last_position = int(last_position)
        if completed_content_items:
            items = dict.fromkeys(lesson_progress.completed_content_items or [])
            items.update(dict.fromkeys(str(item) for item in completed_content_items))
            lesson_progress.completed_content_items = list(items)

        advance_status(lesson_progress, IN_PROGRESS)
        self.store.save(progress)
        return lesson_progress.to_dict()

    @staticmethod
    def _record_lesson_time(progress, lesson_progress, time_spent):
        """Store the client's running total for the lesson; only the growth counts toward the learner total."""
        if not time_spent:
            return
        previous = lesson_progress.time_spent or 0
        lesson_progress.time_spent = max(previous, int(time_spent))
        progress.total_time_spent = (progress.total_time_spent or 0) + lesson_progress.time_spent - previous

    def _record_assessment_attempt(self, learner_id, module_id, kind, score, passed, assessment_id, answers,
                                   time_spent):
        if kind not in (QUIZ, LAB):
            raise ValueError(f"Unknown assessment kind: {kind!r}")

        located = self.engine.locate_module(learner_id, module_id)
        progress, module, module_progress = located.progress, located.module, located.module_progress
        score = float(score or 0)
        passed = bool(passed)

        if kind == QUIZ:
            previously_passed = any(attempt.passed for attempt in module_progress.quiz_attempts)
            attempt = QuizAttemptRecord(
                quiz_id=assessment_id or module.quiz_id,
                attempt_number=len(module_progress.quiz_attempts) + 1,
                score=score,
                passed=passed,
                answers=answers,
                time_spent=time_spent,
                completed_at=utcnow(),
            )
            module_progress.quiz_attempts.append(attempt)
            module_progress.best_quiz_score = max(module_progress.best_quiz_score or 0.0, score)
            multiplier = current_app.config.get("QUIZ_XP_MULTIPLIER", 1.0)
        else:
            previously_passed = any(attempt.passed for attempt in module_progress.lab_attempts)
            attempt = LabAttemptRecord(
                lab_id=assessment_id,
                attempt_number=len(module_progress.lab_attempts) + 1,
                score=score,
                passed=passed,
                responses=answers,
                completed_at=utcnow(),
            )
            module_progress.lab_attempts.append(attempt)
            module_progress.best_lab_score = max(module_progress.best_lab_score or 0.0, score)
            multiplier = current_app.config.get("LAB_XP_MULTIPLIER", 1.5)

        if time_spent:
            progress.total_time_spent = (progress.total_time_spent or 0) + int(time_spent)

        xp_earned = 0
        leveled_up = False
        if passed and not previously_passed:
            xp_earned = assessment_xp(score, multiplier)
            leveled_up = self.gamification.add_xp(progress, xp_earned)

        next_module = None
        track_completed = False
        if self._assessment_gate_satisfied(module, module_progress):
            next_module = self.engine.complete_module(progress, module, module_progress)
            track_completed = self.engine.complete_track_if_finished(located.track_progress, located.track)
        else:
            advance_status(module_progress, IN_PROGRESS)

        self.gamification.update_streak(progress)
        self.store.save(progress)
        logger.info(
            "Learner %s %s attempt %d on module %s: score=%s passed=%s",
            learner_id, kind, attempt.attempt_number, module.module_code, score, passed,
        )

        return {
            "attempt": attempt.to_dict(),
            "xp_earned": xp_earned,
            "leveled_up": leveled_up,
            "total_xp": progress.total_xp,
            "level": progress.level,
            "module_status": module_progress.status,
            "track_completed": track_completed,
            "next_module_id": next_module.id if next_module is not None else None,
        }

    def _assessment_gate_satisfied(self, module, module_progress):
        if module.quiz_id and not any(attempt.passed for attempt in module_progress.quiz_attempts):
            return False
        if module.requires_lab_completion and not any(attempt.passed for attempt in module_progress.lab_attempts):
            return False
        lessons = self.catalog.find_active_lessons_by_module(module)
        for lesson in lessons:
            lesson_progress = find_lesson_progress(module_progress, lesson)
            if lesson_progress is None or lesson_progress.status != COMPLETED:
                return False
        return True

    def _get_progress(self, learner_id):
        progress = self.store.find_progress_by_learner(learner_id)
        if progress is None:
            progress = self.store.create_progress(learner_id)
            self.store.save(progress)

        context = prepare_track_matching_context(progress, self.catalog)
        data = progress.to_dict()
        for entry, track_progress in zip(data["tracks_progress"], progress.tracks_progress):
            track = context.resolve_track(track_progress.track_id)
            if track is None:
                continue
            entry["track_code"] = track.track_code
            if entry["status"] != COMPLETED and self.engine.track_modules_completed(track_progress, track):
                entry["status"] = COMPLETED
        return data

    def _get_next_content(self, learner_id):
        progress = self.store.find_progress_by_learner(learner_id)
        lesson = None
        if progress is not None and progress.current_lesson:
            lesson = self.catalog.find_lesson_by_identifier(progress.current_lesson, active_only=False)
        if lesson is None:
            return self._first_content()

        module = self.catalog.find_module_for_lesson(lesson)
        if module is None:
            raise NotFound("Module not found", module_id=lesson.module_id)
        track = self.catalog.find_track_by_identifier(module.track_id)

        module_progress = self.engine.find_module_progress(progress, module, track)
        lesson_progress = find_lesson_progress(module_progress, lesson)
        if lesson_progress is not None and lesson_progress.status != COMPLETED:
            # resume the lesson in hand before moving on
            return self._content("lesson", track, module, lesson)

        next_lesson = self.catalog.find_next_lesson(module, lesson.order)
        if next_lesson is not None:
            return self._content("lesson", track, module, next_lesson)

        quiz_passed = module_progress is not None and any(attempt.passed for attempt in module_progress.quiz_attempts)
        if module.quiz_id and not quiz_passed:
            content = self._content("quiz", track, module)
            content["quiz_id"] = module.quiz_id
            return content

        track_aliases = tuple(dict.fromkeys(
            (track_reference_variants(track) if track is not None else ())
            + normalize_identifier(module.track_id, "track")
        ))
        next_module = self.catalog.find_next_module(track_aliases, module.order)
        if next_module is not None:
            lessons = self.catalog.find_active_lessons_by_module(next_module)
            return self._content("lesson", track, next_module, lessons[0] if lessons else None)

        content = self._content("completed", track)
        content["message"] = "Track completed! Choose a new track to continue learning."
        return content

    def _first_content(self):
        tracks = self.catalog.find_active_tracks()
        if not tracks:
            raise NotFound("No tracks available")
        track = tracks[0]
        modules = self.catalog.find_active_modules_by_track_aliases(track_reference_variants(track))
        if not modules:
            raise NotFound("No modules available", track_id=track.id)
        lessons = self.catalog.find_active_lessons_by_module(modules[0])
        if not lessons:
            raise NotFound("No lessons available", module_id=modules[0].id)
        return self._content("lesson", track, modules[0], lessons[0])

    @staticmethod
    def _content(kind, track=None, module=None, lesson=None):
        return {
            "type": kind,
            "track": track.to_dict() if track is not None else None,
            "module": module.to_dict() if module is not None else None,
            "lesson": lesson.to_dict() if lesson is not None else None,
        }
