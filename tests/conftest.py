from types import SimpleNamespace

import pytest

from app import create_app
from models import db
from models.lessons import Lesson
from models.modules import Module
from models.tracks import Track


@pytest.fixture()
def app():
    """Application bound to a fresh in-memory database per test."""
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


def _add(entity):
    db.session.add(entity)
    db.session.commit()
    return entity


@pytest.fixture()
def catalog(app):
    """Two tracks whose children reference their parents in mixed encodings.

    Cyber Security Basics (TRK-CYBER)
        MOD-1.1 Threat Landscape   (track_id = track primary key)
            LES-1.1.1              (module_id = module primary key)
            LES-1.1.2              (module_id = legacy "module_1.1")
        MOD-1.2 Network Defense    (track_id = "TRK-CYBER", quiz gated)
            LES-1.2.1              (module_id = "MOD-1.2")
    Advanced Forensics (TRK-FOREN), requires TRK-CYBER
        MOD-2.1 Disk Imaging
            LES-2.1.1
    """
    cyber = _add(Track(
        track_code="TRK-CYBER",
        slug="cyber-security-basics",
        name="Cyber Security Basics",
        order=1,
    ))
    forensics = _add(Track(
        track_code="TRK-FOREN",
        slug="advanced-forensics",
        name="Advanced Forensics",
        order=2,
        prerequisites=["TRK-CYBER"],
    ))

    threats = _add(Module(module_code="MOD-1.1", track_id=cyber.id, name="Threat Landscape", order=1))
    network = _add(Module(
        module_code="MOD-1.2",
        track_id="TRK-CYBER",
        name="Network Defense",
        order=2,
        quiz_id="quiz-network-1",
    ))
    imaging = _add(Module(module_code="MOD-2.1", track_id=forensics.id, name="Disk Imaging", order=1))

    phishing = _add(Lesson(lesson_code="LES-1.1.1", module_id=threats.id, name="Phishing", order=1))
    malware = _add(Lesson(lesson_code="LES-1.1.2", module_id="module_1.1", name="Malware", order=2))
    firewalls = _add(Lesson(lesson_code="LES-1.2.1", module_id="MOD-1.2", name="Firewalls", order=1))
    images = _add(Lesson(lesson_code="LES-2.1.1", module_id=imaging.id, name="Taking Images", order=1))

    return SimpleNamespace(
        cyber=cyber,
        forensics=forensics,
        threats=threats,
        network=network,
        imaging=imaging,
        phishing=phishing,
        malware=malware,
        firewalls=firewalls,
        images=images,
    )
