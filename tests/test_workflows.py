import pytest
from sqlalchemy.orm.exc import StaleDataError

from classes.progress_store import ProgressStore
from classes.workflows import ProgressionWorkflows
from utils.errors import ConcurrentUpdate, ModuleLocked, NotFound
from utils.statuses import COMPLETED, IN_PROGRESS, UNLOCKED


@pytest.fixture()
def workflows() -> ProgressionWorkflows:
    return ProgressionWorkflows()


def _finish_threat_landscape(workflows, learner_id="learner-1"):
    workflows.start_track(learner_id, "TRK-CYBER")
    workflows.start_lesson(learner_id, "LES-1.1.1")
    workflows.complete_lesson(learner_id, "LES-1.1.1")
    return workflows.complete_lesson(learner_id, "LES-1.1.2")


def test_start_track_summary(catalog, workflows) -> None:
    result = workflows.start_track("learner-1", "TRK-CYBER")

    assert result["track"]["track_code"] == "TRK-CYBER"
    assert result["track_progress"]["status"] == IN_PROGRESS
    assert result["module_count"] == 2
    assert [entry["status"] for entry in result["track_progress"]["modules_progress"]] == [UNLOCKED, "locked"]


def test_complete_lesson_awards_xp_once(catalog, workflows) -> None:
    workflows.start_track("learner-1", "TRK-CYBER")
    first = workflows.complete_lesson("learner-1", "LES-1.1.1", time_spent=120)
    again = workflows.complete_lesson("learner-1", "LES-1.1.1", time_spent=30)

    assert first["xp_earned"] == 50
    assert first["total_xp"] == 50
    assert first["next_lesson_id"] == catalog.malware.id
    assert first["next_module_id"] is None
    assert again["xp_earned"] == 0
    assert again["total_xp"] == 50

    progress = ProgressStore.find_progress_by_learner("learner-1")
    assert progress.total_time_spent == 120
    assert progress.current_streak == 1


def test_completing_a_module_unlocks_the_next(catalog, workflows) -> None:
    result = _finish_threat_landscape(workflows)

    assert result["module_status"] == COMPLETED
    assert result["next_module_id"] == catalog.network.id
    assert result["track_completed"] is False

    progress = ProgressStore.find_progress_by_learner("learner-1")
    statuses = [entry.status for entry in progress.tracks_progress[0].modules_progress]
    assert statuses == [COMPLETED, UNLOCKED]


def test_level_up(app, catalog, workflows) -> None:
    app.config["XP_PER_LEVEL"] = 100
    workflows.start_track("learner-1", "TRK-CYBER")

    first = workflows.complete_lesson("learner-1", "LES-1.1.1")
    second = workflows.complete_lesson("learner-1", "LES-1.1.2")

    assert first["leveled_up"] is False
    assert second["leveled_up"] is True
    assert second["level"] == 2


def test_failed_operation_leaves_no_partial_state(catalog, workflows) -> None:
    with pytest.raises(ModuleLocked):
        workflows.complete_lesson("learner-2", "LES-1.2.1")

    assert ProgressStore.find_progress_by_learner("learner-2") is None


def test_stale_save_is_retried(app, catalog, workflows, monkeypatch) -> None:
    calls = []
    save = ProgressStore.save

    def flaky_save(progress):
        calls.append(progress.learner_id)
        if len(calls) == 1:
            raise StaleDataError("learner_progress version mismatch")
        return save(progress)

    monkeypatch.setattr(ProgressStore, "save", staticmethod(flaky_save))
    result = workflows.start_track("learner-1", "TRK-CYBER")

    assert len(calls) == 2
    assert result["track_progress"]["status"] == IN_PROGRESS
    progress = ProgressStore.find_progress_by_learner("learner-1")
    assert len(progress.tracks_progress) == 1


def test_retries_are_bounded(app, catalog, workflows, monkeypatch) -> None:
    app.config["PROGRESS_SAVE_RETRIES"] = 2
    calls = []

    def always_stale(progress):
        calls.append(progress.learner_id)
        raise StaleDataError("learner_progress version mismatch")

    monkeypatch.setattr(ProgressStore, "save", staticmethod(always_stale))
    with pytest.raises(ConcurrentUpdate):
        workflows.start_track("learner-1", "TRK-CYBER")

    assert len(calls) == 2
    assert ProgressStore.find_progress_by_learner("learner-1") is None


def test_update_lesson_progress_autosaves(catalog, workflows) -> None:
    workflows.start_track("learner-1", "TRK-CYBER")
    workflows.update_lesson_progress("learner-1", "LES-1.1.1", time_spent=10, last_position=12,
                                     completed_content_items=["video-1"])
    workflows.update_lesson_progress("learner-1", "LES-1.1.1", time_spent=20)
    result = workflows.update_lesson_progress("learner-1", "LES-1.1.1", time_spent=30,
                                              completed_content_items=["video-1", "quiz-card-2"])

    assert result["status"] == IN_PROGRESS
    assert result["time_spent"] == 30
    assert result["last_position"] == 12
    assert result["completed_content_items"] == ["video-1", "quiz-card-2"]
    assert ProgressStore.find_progress_by_learner("learner-1").total_time_spent == 30


def test_time_spent_is_a_running_total(catalog, workflows) -> None:
    workflows.start_track("learner-1", "TRK-CYBER")
    workflows.update_lesson_progress("learner-1", "LES-1.1.1", time_spent=45)
    stale = workflows.update_lesson_progress("learner-1", "LES-1.1.1", time_spent=15)
    workflows.update_lesson_progress("learner-1", "LES-1.1.2", time_spent=20)
    workflows.complete_lesson("learner-1", "LES-1.1.1", time_spent=70)

    assert stale["time_spent"] == 45
    progress = ProgressStore.find_progress_by_learner("learner-1")
    lesson_times = [entry.time_spent for entry in progress.tracks_progress[0].modules_progress[0].lessons_progress]
    assert sorted(lesson_times) == [20, 70]
    assert progress.total_time_spent == 90


def test_quiz_gate_completes_module_and_track(catalog, workflows) -> None:
    _finish_threat_landscape(workflows)
    lesson = workflows.complete_lesson("learner-1", "LES-1.2.1")
    assert lesson["module_status"] == UNLOCKED
    assert lesson["track_completed"] is False

    failed = workflows.record_assessment_attempt("learner-1", "MOD-1.2", "quiz", 40, False)
    assert failed["attempt"]["attempt_number"] == 1
    assert failed["xp_earned"] == 0
    assert failed["module_status"] == IN_PROGRESS

    passed = workflows.record_assessment_attempt("learner-1", "module_1.2", "quiz", 85, True)
    assert passed["attempt"]["attempt_number"] == 2
    assert passed["attempt"]["quiz_id"] == "quiz-network-1"
    assert passed["xp_earned"] == 85
    assert passed["module_status"] == COMPLETED
    assert passed["track_completed"] is True

    progress = ProgressStore.find_progress_by_learner("learner-1")
    assert progress.tracks_progress[0].status == COMPLETED
    assert progress.tracks_progress[0].modules_progress[1].best_quiz_score == 85

    forensics = workflows.start_track("learner-1", "TRK-FOREN")
    assert forensics["track_progress"]["status"] == IN_PROGRESS


def test_assessment_in_locked_module_is_refused(catalog, workflows) -> None:
    workflows.start_track("learner-1", "TRK-CYBER")
    with pytest.raises(ModuleLocked):
        workflows.record_assessment_attempt("learner-1", "MOD-1.2", "quiz", 100, True)


def test_unknown_assessment_kind(catalog, workflows) -> None:
    workflows.start_track("learner-1", "TRK-CYBER")
    with pytest.raises(ValueError):
        workflows.record_assessment_attempt("learner-1", "MOD-1.1", "essay", 100, True)


def test_get_progress_creates_the_aggregate(catalog, workflows) -> None:
    data = workflows.get_progress("learner-3")

    assert data["learner_id"] == "learner-3"
    assert data["total_xp"] == 0
    assert data["level"] == 1
    assert data["tracks_progress"] == []
    assert ProgressStore.find_progress_by_learner("learner-3") is not None


def test_get_progress_reports_completed_tracks(catalog, workflows) -> None:
    workflows.start_track("learner-1", "TRK-CYBER")
    progress = ProgressStore.find_progress_by_learner("learner-1")
    for module_progress in progress.tracks_progress[0].modules_progress:
        module_progress.status = COMPLETED
    ProgressStore.save(progress)

    data = workflows.get_progress("learner-1")
    assert data["tracks_progress"][0]["status"] == COMPLETED
    assert data["tracks_progress"][0]["track_code"] == "TRK-CYBER"


def test_next_content_walks_the_catalog(catalog, workflows) -> None:
    first = workflows.get_next_content("learner-1")
    assert first["type"] == "lesson"
    assert first["lesson"]["lesson_code"] == "LES-1.1.1"

    workflows.start_track("learner-1", "TRK-CYBER")
    workflows.start_lesson("learner-1", "LES-1.1.1")
    assert workflows.get_next_content("learner-1")["lesson"]["lesson_code"] == "LES-1.1.1"

    workflows.complete_lesson("learner-1", "LES-1.1.1")
    assert workflows.get_next_content("learner-1")["lesson"]["lesson_code"] == "LES-1.1.2"

    _finish_threat_landscape(workflows)
    following = workflows.get_next_content("learner-1")
    assert following["module"]["module_code"] == "MOD-1.2"
    assert following["lesson"]["lesson_code"] == "LES-1.2.1"

    workflows.complete_lesson("learner-1", "LES-1.2.1")
    quiz = workflows.get_next_content("learner-1")
    assert quiz["type"] == "quiz"
    assert quiz["quiz_id"] == "quiz-network-1"

    workflows.record_assessment_attempt("learner-1", "MOD-1.2", "quiz", 90, True)
    assert workflows.get_next_content("learner-1")["type"] == "completed"


def test_next_content_without_catalog(app, workflows) -> None:
    with pytest.raises(NotFound):
        workflows.get_next_content("learner-1")
