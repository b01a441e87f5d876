# =====================================================
# FILE: app/api/api_v1/messages/messages.py
# Project message threads
# =====================================================

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import asc
from typing import Optional
import logging

from app.core.database import get_db
from app.core.dependencies import get_current_user
from app.core.exceptions import DeliveryError, NotFound, PersistenceError, ValidationError
from app.core.permissions import Permission
from app.middleware.rbac_middleware import RBACDependency, can
from app.models.message import Message
from app.models.phase import Phase
from app.models.project import Project
from app.models.user import User
from app.services.project_service import ProjectService
from app.api.api_v1.messages.schemas import MessageCreate, MessageUpdate

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_message(db: Session, message_id: int, user: User) -> Message:
    message = db.query(Message).filter(Message.id == message_id).first()
    if not message or not ProjectService.can_access(message.project, user):
        raise NotFound("Message not found")
    return message


def _require_author_or_moderator(message: Message, user: User) -> None:
    if message.sender_id == user.id or can(user, Permission.MESSAGE_MODERATE):
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Only the sender or a moderator can change this message"
    )


@router.get("")
async def list_messages(
    project_id: Optional[int] = Query(None),
    phase_id: Optional[int] = Query(None),
    message_type: Optional[str] = Query(None),
    reply_to_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Messages in posting order"""
    query = db.query(Message).join(Project, Message.project_id == Project.id)

    if not can(current_user, Permission.PROJECT_VIEW_ALL):
        query = query.filter(Project.client_email == current_user.email)
    if project_id is not None:
        query = query.filter(Message.project_id == project_id)
    if phase_id is not None:
        query = query.filter(Message.phase_id == phase_id)
    if message_type:
        query = query.filter(Message.message_type == message_type)
    if reply_to_id is not None:
        query = query.filter(Message.reply_to_id == reply_to_id)

    messages = query.order_by(asc(Message.created_at), asc(Message.id)).all()
    return [m.to_dict() for m in messages]


@router.post("", status_code=201)
async def post_message(
    payload: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.MESSAGE_POST))
):
    try:
        project = ProjectService.get_project(db, payload.project_id, current_user)

        if payload.message_type == "system" and not can(current_user, Permission.MESSAGE_MODERATE):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the delivery team can post system messages"
            )

        if payload.phase_id is not None:
            phase = db.query(Phase).filter(Phase.id == payload.phase_id).first()
            if not phase or phase.project_id != project.id:
                raise ValidationError(f"Phase {payload.phase_id} does not belong to project {project.id}")

        if payload.reply_to_id is not None:
            parent = db.query(Message).filter(Message.id == payload.reply_to_id).first()
            if not parent or parent.project_id != project.id:
                raise ValidationError(
                    f"Message {payload.reply_to_id} does not exist in project {project.id}"
                )

        message = Message(
            project_id=project.id,
            phase_id=payload.phase_id,
            sender_id=current_user.id,
            content=payload.content,
            message_type=payload.message_type,
            reply_to_id=payload.reply_to_id,
            is_resolved=False
        )
        db.add(message)
        db.commit()
        db.refresh(message)

        logger.info(f"Message {message.id} posted to project {project.id} by {current_user.email}")
        return message.to_dict()

    except (HTTPException, DeliveryError):
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error posting message: {str(e)}")
        raise PersistenceError() from e


@router.get("/{message_id}")
async def get_message(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return _get_message(db, message_id, current_user).to_dict()


@router.put("/{message_id}")
async def update_message(
    message_id: int,
    payload: MessageUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Edit content (sender only) or mark the thread resolved"""
    try:
        message = _get_message(db, message_id, current_user)
        updates = payload.model_dump(exclude_unset=True)

        if updates.get("content") is not None:
            if message.sender_id != current_user.id:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Only the sender can edit a message"
                )
            message.content = updates["content"]

        if updates.get("is_resolved") is not None:
            _require_author_or_moderator(message, current_user)
            message.is_resolved = updates["is_resolved"]

        db.commit()
        db.refresh(message)
        return message.to_dict()

    except (HTTPException, DeliveryError):
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating message {message_id}: {str(e)}")
        raise PersistenceError() from e


@router.delete("/{message_id}")
async def delete_message(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Replies keep their reply_to_id; the reference simply stops resolving"""
    try:
        message = _get_message(db, message_id, current_user)
        _require_author_or_moderator(message, current_user)

        db.delete(message)
        db.commit()

        logger.info(f"Message {message_id} deleted by {current_user.email}")
        return {"success": True, "id": message_id}

    except (HTTPException, DeliveryError):
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting message {message_id}: {str(e)}")
        raise PersistenceError() from e
