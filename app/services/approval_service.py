# =====================================================
# FILE: app/services/approval_service.py
# Approval workflow bound to phase transitions
# =====================================================

from contextlib import contextmanager
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from datetime import datetime
from typing import Optional
import logging

from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    DeliveryError,
    InvalidState,
    NotFound,
    PersistenceError,
    ValidationError,
)
from app.models.approval import Approval
from app.models.message import Message
from app.models.phase import Phase
from app.services import phase_lifecycle as lifecycle
from app.services.phase_lifecycle import PhaseAction, PhaseStatus
from app.services.project_service import ProjectService

logger = logging.getLogger(__name__)

# Approval decisions and the phase action each one mirrors
DECISIONS = {
    "approved": PhaseAction.APPROVE,
    "rejected": PhaseAction.REQUEST_CHANGES,
}
DECISION_ALIASES = {"changes_requested": "rejected"}

# MySQL deadlock and lock wait timeout
LOCK_CONFLICT_CODES = (1213, 1205)


class ApprovalService:
    """
    Keeps Approval records and their Phase in step.

    Every public operation runs in a single transaction on the session it was
    given. The phase row is locked (SELECT ... FOR UPDATE) and carries an
    optimistic version counter, so two concurrent resolutions on the same
    phase cannot both commit: the loser sees InvalidTransition, InvalidState
    or ConflictError. Rows are always locked phase first, then approval.
    """

    def __init__(self, db: Session, auto_start_next: Optional[bool] = None):
        self.db = db
        self.auto_start_next = settings.AUTO_START_NEXT_PHASE if auto_start_next is None else auto_start_next

    @contextmanager
    def transaction(self):
        """Commit on success; roll back and translate every failure."""
        try:
            yield
            self.db.commit()
        except DeliveryError:
            self.db.rollback()
            raise
        except StaleDataError as e:
            self.db.rollback()
            logger.warning(f"Concurrent update lost the race: {str(e)}")
            raise ConflictError("The phase was changed by another request; reload and retry")
        except OperationalError as e:
            self.db.rollback()
            if not _is_lock_conflict(e):
                logger.error(f"Approval workflow transaction failed: {str(e)}")
                raise PersistenceError() from e
            logger.warning(f"Lock conflict on phase update: {str(e)}")
            raise ConflictError("The phase is being changed by another request; reload and retry")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Approval workflow transaction failed: {str(e)}")
            raise PersistenceError() from e

    # -------------------------------------------------
    # Public operations
    # -------------------------------------------------

    def request_approval(self, phase_id: int, requested_by) -> Approval:
        """Open an approval request for a phase that is awaiting approval."""
        with self.transaction():
            phase = self._lock_phase(phase_id)

            if phase.status != PhaseStatus.AWAITING_APPROVAL:
                raise InvalidState(
                    f"Phase \"{phase.name}\" is {phase.status}; approvals can only be "
                    f"requested while it is {PhaseStatus.AWAITING_APPROVAL.value}"
                )
            if self._pending_approval(phase.id) is not None:
                raise InvalidState(f"Phase \"{phase.name}\" already has a pending approval")

            now = datetime.utcnow()
            approval = Approval(
                project_id=phase.project_id,
                phase_id=phase.id,
                requested_by_id=requested_by.id,
                requested_at=now,
                status="pending"
            )
            self.db.add(approval)

            # Bumps the phase version so concurrent requests serialize
            phase.updated_at = now

        logger.info(f"Approval {approval.id} requested for phase {phase.id} by {requested_by.email}")
        return approval

    def resolve_approval(
        self,
        approval_id: int,
        decision: str,
        responder,
        feedback: Optional[str] = None
    ) -> Approval:
        """
        Approve or reject a pending approval and mirror the decision onto its
        phase (approve / request_changes) in the same transaction.
        """
        with self.transaction():
            decision = DECISION_ALIASES.get(decision, decision)
            if decision not in DECISIONS:
                raise ValidationError(
                    f"Approval decision must be one of: {', '.join(DECISIONS)}; got {decision!r}"
                )

            approval = self.db.query(Approval).filter(Approval.id == approval_id).first()
            if not approval:
                raise NotFound("Approval not found")

            # Phase first, then approval: the same order transition_phase uses
            phase = self._lock_phase(approval.phase_id)
            approval = self.db.query(Approval).filter(
                Approval.id == approval_id
            ).populate_existing().with_for_update().first()
            if not approval:
                raise NotFound("Approval not found")
            if approval.status != "pending":
                raise InvalidState(f"Approval {approval.id} is already {approval.status}")

            self._apply(phase, DECISIONS[decision], responder, feedback)
            self._close_approval(approval, decision, responder, feedback)

        logger.info(f"Approval {approval.id} {decision} by {responder.email}")
        return approval

    def transition_phase(
        self,
        phase_id: int,
        action,
        actor,
        feedback: Optional[str] = None
    ) -> Phase:
        """
        Run a lifecycle action on a phase. approve / request_changes also
        resolve the phase's pending approval, if any.
        """
        with self.transaction():
            action = lifecycle.parse_action(action)
            phase = self._lock_phase(phase_id)

            pending = None
            if action in (PhaseAction.APPROVE, PhaseAction.REQUEST_CHANGES):
                pending = self._pending_approval(phase.id)

            self._apply(phase, action, actor, feedback)

            if pending is not None:
                decision = "approved" if action == PhaseAction.APPROVE else "rejected"
                self._close_approval(pending, decision, actor, feedback)

        logger.info(f"Phase {phase.id} -> {phase.status} ({action.value}) by {actor.email}")
        return phase

    # -------------------------------------------------
    # Internals
    # -------------------------------------------------

    def _lock_phase(self, phase_id: int) -> Phase:
        phase = self.db.query(Phase).filter(
            Phase.id == phase_id
        ).populate_existing().with_for_update().first()
        if not phase:
            raise NotFound("Phase not found")
        if phase.project.status == "archived":
            raise InvalidState(f"Project {phase.project_id} is archived")
        return phase

    def _pending_approval(self, phase_id: int) -> Optional[Approval]:
        return self.db.query(Approval).filter(
            Approval.phase_id == phase_id,
            Approval.status == "pending"
        ).populate_existing().with_for_update().first()

    def _close_approval(self, approval: Approval, decision: str, responder, feedback: Optional[str]) -> None:
        approval.status = decision
        approval.responded_by_id = responder.id
        approval.responded_at = datetime.utcnow()
        if feedback is not None:
            approval.feedback = feedback

    def _apply(self, phase: Phase, action: PhaseAction, actor, feedback: Optional[str]) -> None:
        """Gate, transition and run the side effects of one phase action."""
        siblings = lifecycle.validate_sequence(ProjectService.get_phases(self.db, phase.project_id))

        lifecycle.check_transition(phase.status, action)
        if action in (PhaseAction.START, PhaseAction.APPROVE):
            previous = lifecycle.previous_phase(siblings, phase)
            if not lifecycle.is_accessible(phase, previous):
                blocker = f"\"{previous.name}\"" if previous else f"phase {phase.order - 1}"
                raise InvalidState(f"Phase \"{phase.name}\" is locked until {blocker} is approved")

        lifecycle.transition(phase, action)
        touched = [phase]

        if action == PhaseAction.APPROVE:
            phase.approved_at = datetime.utcnow()
            phase.approved_by = actor.email

            following = lifecycle.next_phase(siblings, phase)
            if self.auto_start_next and following is not None \
                    and following.status == PhaseStatus.NOT_STARTED:
                lifecycle.transition(following, PhaseAction.START)
                touched.append(following)
                logger.info(f"Started phase {following.id} after approval of phase {phase.id}")

            self._post(phase, f"{actor.full_name or actor.email} approved phase \"{phase.name}\"", "system")

        elif action == PhaseAction.REQUEST_CHANGES and feedback:
            self._post(phase, f"Changes requested: {feedback}", "user", sender=actor)

        ProjectService.refresh_progress(phase.project, siblings)
        self.db.flush()
        ProjectService.refresh_team_load(self.db, [p.assigned_to_id for p in touched])

    def _post(self, phase: Phase, content: str, message_type: str, sender=None) -> None:
        self.db.add(Message(
            project_id=phase.project_id,
            phase_id=phase.id,
            sender_id=sender.id if sender is not None else None,
            content=content,
            message_type=message_type
        ))


def _is_lock_conflict(error: OperationalError) -> bool:
    """True for deadlocks and lock wait timeouts reported by the database."""
    args = getattr(error.orig, "args", ())
    if args and args[0] in LOCK_CONFLICT_CODES:
        return True
    return "database is locked" in str(error.orig)
