import threading

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.dialects import mysql
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.core.database import Base, enable_sqlite_foreign_keys
from app.core.exceptions import (
    ConflictError,
    InvalidState,
    InvalidTransition,
    NotFound,
    PersistenceError,
    ValidationError,
)
from app.models.approval import Approval
from app.models.message import Message
from app.models.phase import Phase
from app.models.project import Project
from app.models.user import TeamMember, User
from app.services.approval_service import ApprovalService
from app.services.project_service import ProjectService


def reload(db, model, pk):
    db.expire_all()
    return db.get(model, pk)


# --- Approval requests ------------------------------------------------------


def test_request_approval_requires_awaiting_phase(db, users, make_project):
    project = make_project(("in_progress", "not_started"))

    with pytest.raises(InvalidState):
        ApprovalService(db).request_approval(project.phases[0].id, users["pm"])
    assert db.query(Approval).count() == 0


def test_only_one_pending_approval_per_phase(db, users, make_project):
    project = make_project(("awaiting_approval", "not_started"))
    service = ApprovalService(db)

    approval = service.request_approval(project.phases[0].id, users["pm"])
    assert approval.status == "pending"
    assert approval.requested_by_id == users["pm"].id

    with pytest.raises(InvalidState, match="already has a pending approval"):
        service.request_approval(project.phases[0].id, users["pm"])


def test_request_approval_for_missing_phase(db, users):
    with pytest.raises(NotFound):
        ApprovalService(db).request_approval(999, users["pm"])


# --- Resolving --------------------------------------------------------------


def test_approving_moves_phase_and_starts_the_next(db, users, make_project):
    project = make_project(("awaiting_approval", "not_started", "not_started"))
    service = ApprovalService(db)
    approval = service.request_approval(project.phases[0].id, users["pm"])

    service.resolve_approval(approval.id, "approved", users["client"])

    first = reload(db, Phase, project.phases[0].id)
    second = reload(db, Phase, project.phases[1].id)
    assert first.status == "approved"
    assert first.approved_by == users["client"].email
    assert first.approved_at is not None
    assert second.status == "in_progress"

    approval = reload(db, Approval, approval.id)
    assert approval.status == "approved"
    assert approval.responded_by_id == users["client"].id

    assert reload(db, Project, project.id).progress_percentage == 33


def test_auto_start_can_be_disabled(db, users, make_project):
    project = make_project(("awaiting_approval", "not_started"))

    ApprovalService(db, auto_start_next=False).transition_phase(
        project.phases[0].id, "approve", users["client"]
    )

    assert reload(db, Phase, project.phases[1].id).status == "not_started"


def test_approval_posts_system_message(db, users, make_project):
    project = make_project(("awaiting_approval",))

    ApprovalService(db).transition_phase(project.phases[0].id, "approve", users["client"])

    messages = db.query(Message).filter(Message.project_id == project.id).all()
    assert len(messages) == 1
    assert messages[0].message_type == "system"
    assert messages[0].sender_id is None
    assert messages[0].content == 'Demo Client approved phase "Phase 1"'


def test_reject_then_resume(db, users, make_project):
    project = make_project(("awaiting_approval", "not_started"))
    service = ApprovalService(db)
    approval = service.request_approval(project.phases[0].id, users["pm"])

    service.resolve_approval(approval.id, "rejected", users["client"], feedback="needs revisions")

    phase = reload(db, Phase, project.phases[0].id)
    assert phase.status == "changes_requested"
    assert reload(db, Approval, approval.id).feedback == "needs revisions"

    note = db.query(Message).filter(Message.project_id == project.id).one()
    assert note.content == "Changes requested: needs revisions"
    assert note.message_type == "user"
    assert note.sender_id == users["client"].id

    service.transition_phase(phase.id, "resume", users["pm"])
    assert reload(db, Phase, phase.id).status == "in_progress"
    assert reload(db, Phase, project.phases[1].id).status == "not_started"


def test_changes_requested_is_accepted_as_rejection(db, users, make_project):
    project = make_project(("awaiting_approval",))
    service = ApprovalService(db)
    approval = service.request_approval(project.phases[0].id, users["pm"])

    resolved = service.resolve_approval(approval.id, "changes_requested", users["client"])

    assert resolved.status == "rejected"
    assert reload(db, Phase, project.phases[0].id).status == "changes_requested"


def test_unknown_decision_is_rejected(db, users, make_project):
    project = make_project(("awaiting_approval",))
    service = ApprovalService(db)
    approval = service.request_approval(project.phases[0].id, users["pm"])

    with pytest.raises(ValidationError):
        service.resolve_approval(approval.id, "maybe", users["client"])
    assert reload(db, Approval, approval.id).status == "pending"


def test_resolved_approval_cannot_be_resolved_again(db, users, make_project):
    project = make_project(("awaiting_approval",))
    service = ApprovalService(db)
    approval = service.request_approval(project.phases[0].id, users["pm"])
    service.resolve_approval(approval.id, "approved", users["client"])

    with pytest.raises(InvalidState):
        service.resolve_approval(approval.id, "rejected", users["client"])
    assert reload(db, Phase, project.phases[0].id).status == "approved"


def test_direct_transition_closes_pending_approval(db, users, make_project):
    project = make_project(("awaiting_approval",))
    service = ApprovalService(db)
    approval = service.request_approval(project.phases[0].id, users["pm"])

    service.transition_phase(project.phases[0].id, "request_changes", users["client"], "tweak colours")

    approval = reload(db, Approval, approval.id)
    assert approval.status == "rejected"
    assert approval.feedback == "tweak colours"


# --- Locking ----------------------------------------------------------------


def record_row_locks(session):
    """Tables read with SELECT ... FOR UPDATE, in order, as MySQL would see them."""
    locked = []

    @event.listens_for(session, "do_orm_execute")
    def _record(state):
        if state.is_select and not state.is_relationship_load and state.bind_mapper is not None:
            sql = str(state.statement.compile(dialect=mysql.dialect()))
            if "FOR UPDATE" in sql:
                locked.append(state.bind_mapper.class_.__tablename__)

    return locked


def test_both_resolution_paths_lock_phase_before_approval(db, users, make_project):
    via_approval = make_project(("awaiting_approval",))
    via_transition = make_project(("awaiting_approval",), name="Second")
    service = ApprovalService(db)
    approval = service.request_approval(via_approval.phases[0].id, users["pm"])
    service.request_approval(via_transition.phases[0].id, users["pm"])

    locked = record_row_locks(db)
    service.resolve_approval(approval.id, "approved", users["client"])
    resolve_order = list(locked)

    locked.clear()
    service.transition_phase(via_transition.phases[0].id, "approve", users["client"])

    assert resolve_order == ["phases", "approvals"]
    assert locked == ["phases", "approvals"]


def test_deadlock_is_reported_as_conflict(db):
    deadlock = OperationalError("UPDATE phases", {}, Exception(1213, "Deadlock found when trying to get lock"))

    with pytest.raises(ConflictError):
        with ApprovalService(db).transaction():
            raise deadlock


def test_other_operational_errors_stay_opaque(db):
    gone = OperationalError("SELECT 1", {}, Exception(2006, "MySQL server has gone away"))

    with pytest.raises(PersistenceError):
        with ApprovalService(db).transaction():
            raise gone


# --- Gating and state -------------------------------------------------------


def test_locked_phase_cannot_be_started(db, users, make_project):
    project = make_project(("in_progress", "not_started"))

    with pytest.raises(InvalidState, match="locked"):
        ApprovalService(db).transition_phase(project.phases[1].id, "start", users["pm"])
    assert reload(db, Phase, project.phases[1].id).status == "not_started"


def test_invalid_transition_is_rolled_back(db, users, make_project):
    project = make_project(("approved", "in_progress"))

    with pytest.raises(InvalidTransition):
        ApprovalService(db).transition_phase(project.phases[0].id, "start", users["pm"])
    assert reload(db, Phase, project.phases[0].id).status == "approved"


def test_archived_project_rejects_transitions(db, users, make_project):
    project = make_project(("in_progress",), status="archived")

    with pytest.raises(InvalidState, match="archived"):
        ApprovalService(db).transition_phase(project.phases[0].id, "submit_for_approval", users["pm"])


def test_last_approval_completes_project(db, users, make_project):
    project = make_project(("approved", "awaiting_approval"))

    ApprovalService(db).transition_phase(project.phases[1].id, "approve", users["client"])

    project = reload(db, Project, project.id)
    assert project.progress_percentage == 100
    assert project.status == "completed"


def test_team_load_follows_active_phases(db, users, make_project, designer):
    project = make_project(("in_progress", "not_started"))
    for p in project.phases:
        p.assigned_to_id = designer.id
    db.commit()
    ProjectService.refresh_team_load(db, [designer.id])
    db.commit()
    assert reload(db, TeamMember, designer.id).active_phases_count == 1

    service = ApprovalService(db)
    service.transition_phase(project.phases[0].id, "submit_for_approval", users["pm"])
    service.transition_phase(project.phases[0].id, "approve", users["client"])

    # Phase 1 approved, phase 2 auto-started
    assert reload(db, TeamMember, designer.id).active_phases_count == 1

    service.transition_phase(project.phases[1].id, "submit_for_approval", users["pm"])
    service.transition_phase(project.phases[1].id, "approve", users["client"])
    assert reload(db, TeamMember, designer.id).active_phases_count == 0


# --- Concurrency ------------------------------------------------------------


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite so that separate sessions use separate connections."""
    import app.models  # noqa: F401

    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30}
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def race_setup(file_engine):
    with Session(file_engine, expire_on_commit=False) as s:
        reviewer = User(email="client@northwind.io", full_name="Demo Client", role="client")
        project = Project(name="Race", project_code="RACE01", client_email=reviewer.email, status="active", tags=[])
        project.phases.append(Phase(name="Design", order=1, status="awaiting_approval"))
        project.phases.append(Phase(name="Build", order=2, status="not_started"))
        s.add_all([reviewer, project])
        s.commit()
        return reviewer, project.phases[0].id


def test_second_approve_after_first_commits_is_invalid(file_engine, race_setup):
    reviewer, phase_id = race_setup
    first = Session(file_engine, expire_on_commit=False)
    second = Session(file_engine, expire_on_commit=False)
    try:
        # Both sessions have seen the phase as awaiting approval
        assert second.get(Phase, phase_id).status == "awaiting_approval"

        ApprovalService(first).transition_phase(phase_id, "approve", reviewer)

        with pytest.raises(InvalidTransition):
            ApprovalService(second).transition_phase(phase_id, "approve", reviewer)
    finally:
        first.close()
        second.close()


def test_stale_write_is_a_conflict(file_engine, race_setup):
    reviewer, phase_id = race_setup
    first = Session(file_engine, expire_on_commit=False)
    second = Session(file_engine, expire_on_commit=False)
    try:
        stale = second.get(Phase, phase_id)

        ApprovalService(first).transition_phase(phase_id, "approve", reviewer)

        with pytest.raises(ConflictError):
            with ApprovalService(second).transaction():
                stale.description = "edited from an outdated copy"
    finally:
        first.close()
        second.close()

    with Session(file_engine) as check:
        phase = check.get(Phase, phase_id)
        assert phase.status == "approved"
        assert phase.description is None


def test_concurrent_approves_exactly_one_succeeds(file_engine, race_setup):
    reviewer, phase_id = race_setup
    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def approve():
        session = Session(file_engine, expire_on_commit=False)
        try:
            barrier.wait()
            ApprovalService(session).transition_phase(phase_id, "approve", reviewer)
            result = "ok"
        except (InvalidTransition, ConflictError) as e:
            result = type(e).__name__
        finally:
            session.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=approve) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes).count("ok") == 1
    assert len(outcomes) == 2

    with Session(file_engine) as check:
        assert check.get(Phase, phase_id).status == "approved"
        system_messages = check.query(Message).filter(Message.message_type == "system").count()
        assert system_messages == 1
        assert check.query(Phase).filter(Phase.order == 2).one().status == "in_progress"


def test_resolve_and_direct_approve_race(file_engine, race_setup):
    reviewer, phase_id = race_setup
    with Session(file_engine, expire_on_commit=False) as s:
        approval = Approval(project_id=s.get(Phase, phase_id).project_id, phase_id=phase_id, status="pending")
        s.add(approval)
        s.commit()
        approval_id = approval.id

    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def run(operation):
        session = Session(file_engine, expire_on_commit=False)
        try:
            barrier.wait()
            operation(ApprovalService(session))
            result = "ok"
        except (InvalidTransition, InvalidState, ConflictError) as e:
            result = type(e).__name__
        finally:
            session.close()
        with lock:
            outcomes.append(result)

    threads = [
        threading.Thread(target=run, args=(lambda svc: svc.resolve_approval(approval_id, "approved", reviewer),)),
        threading.Thread(target=run, args=(lambda svc: svc.transition_phase(phase_id, "approve", reviewer),)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(outcomes) == 2
    assert outcomes.count("ok") == 1

    with Session(file_engine) as check:
        assert check.get(Phase, phase_id).status == "approved"
        assert check.get(Approval, approval_id).status == "approved"
        assert check.query(Message).filter(Message.message_type == "system").count() == 1
