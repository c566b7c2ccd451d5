from flask_sqlalchemy import SQLAlchemy

# Initialize SQLAlchemy
db = SQLAlchemy()

# Import models
from models.tracks import Track
from models.modules import Module
from models.lessons import Lesson

from models.learner_progress import LearnerProgress
from models.track_progress import TrackProgress
from models.module_progress import ModuleProgress
from models.lesson_progress import LessonProgress
from models.assessment_attempts import QuizAttemptRecord, LabAttemptRecord
