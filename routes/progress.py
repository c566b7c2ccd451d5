import logging
from flask import Blueprint, jsonify, g, request

from classes.workflows import ProgressionWorkflows
from utils.errors import ProgressionError
from utils.utils import learner_required

logger = logging.getLogger(__name__)

# Learner progression blueprint
progress_bp = Blueprint("progress", __name__)

workflows = ProgressionWorkflows()


@progress_bp.errorhandler(ProgressionError)
def handle_progression_error(e):
    logger.info("%s: %s", e.__class__.__name__, e.message)
    return jsonify(e.to_dict()), e.status_code


@progress_bp.errorhandler(ValueError)
def handle_value_error(e):
    return jsonify({"error": str(e)}), 400


#Fetch the learner's whole progress aggregate
@progress_bp.route("/", methods=["GET"])
@learner_required
def get_progress():
    return jsonify(workflows.get_progress(g.learner_id))


#Recommend what to study next
@progress_bp.route("/next", methods=["GET"])
@learner_required
def get_next_content():
    return jsonify(workflows.get_next_content(g.learner_id))


@progress_bp.route("/tracks/<track_id>/start", methods=["POST"])
@learner_required
def start_track(track_id):
    return jsonify(workflows.start_track(g.learner_id, track_id)), 201


@progress_bp.route("/lessons/<lesson_id>/start", methods=["POST"])
@learner_required
def start_lesson(lesson_id):
    return jsonify(workflows.start_lesson(g.learner_id, lesson_id))


#Autosave of time spent, playback position and completed content items
@progress_bp.route("/lessons/<lesson_id>", methods=["PUT"])
@learner_required
def update_lesson_progress(lesson_id):
    data = request.get_json(silent=True) or {}
    lesson_progress = workflows.update_lesson_progress(
        g.learner_id,
        lesson_id,
        time_spent=data.get("time_spent"),
        last_position=data.get("last_position"),
        completed_content_items=data.get("completed_content_items"),
    )
    return jsonify({"lesson_progress": lesson_progress})


@progress_bp.route("/lessons/<lesson_id>/complete", methods=["POST"])
@learner_required
def complete_lesson(lesson_id):
    data = request.get_json(silent=True) or {}
    return jsonify(workflows.complete_lesson(g.learner_id, lesson_id, time_spent=data.get("time_spent")))


#Record a quiz or lab attempt that was scored elsewhere
@progress_bp.route("/modules/<module_id>/attempts", methods=["POST"])
@learner_required
def record_attempt(module_id):
    data = request.get_json(silent=True) or {}

    if "score" not in data or "passed" not in data:
        return jsonify({"error": "score and passed are required"}), 400

    result = workflows.record_assessment_attempt(
        g.learner_id,
        module_id,
        data.get("kind", "quiz"),
        data["score"],
        data["passed"],
        assessment_id=data.get("assessment_id"),
        answers=data.get("answers"),
        time_spent=data.get("time_spent"),
    )
    return jsonify(result), 201
