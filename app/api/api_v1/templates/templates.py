# =====================================================
# FILE: app/api/api_v1/templates/templates.py
# Project template catalog
# =====================================================

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
import logging

from app.core.database import get_db
from app.core.dependencies import get_current_user
from app.core.exceptions import DeliveryError, NotFound, PersistenceError
from app.core.permissions import Permission
from app.middleware.rbac_middleware import RBACDependency
from app.models.template import Template
from app.models.user import User
from app.api.api_v1.templates.schemas import TemplateCreate, TemplateUpdate

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_template(db: Session, template_id: int) -> Template:
    template = db.query(Template).filter(Template.id == template_id).first()
    if not template:
        raise NotFound("Template not found")
    return template


@router.get("")
async def list_templates(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return [t.to_dict() for t in db.query(Template).order_by(Template.name).all()]


@router.post("", status_code=201)
async def create_template(
    payload: TemplateCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.TEMPLATE_MANAGE))
):
    try:
        template = Template(
            name=payload.name,
            suite_type=payload.suite_type,
            description=payload.description,
            phases=[phase.model_dump() for phase in sorted(payload.phases, key=lambda p: p.order)]
        )
        db.add(template)
        db.commit()
        db.refresh(template)

        logger.info(f"Template {template.id} ({template.name}) created by {current_user.email}")
        return template.to_dict()

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating template: {str(e)}")
        raise PersistenceError() from e


@router.get("/{template_id}")
async def get_template(
    template_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return _get_template(db, template_id).to_dict()


@router.put("/{template_id}")
async def update_template(
    template_id: int,
    payload: TemplateUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.TEMPLATE_MANAGE))
):
    """Existing projects keep the phases they were created with"""
    try:
        template = _get_template(db, template_id)
        updates = payload.model_dump(exclude_unset=True, exclude={"phases"})

        for field, value in updates.items():
            if value is None and field == "name":
                continue
            setattr(template, field, value)

        if payload.phases is not None:
            template.phases = [phase.model_dump() for phase in sorted(payload.phases, key=lambda p: p.order)]

        db.commit()
        db.refresh(template)
        return template.to_dict()

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating template {template_id}: {str(e)}")
        raise PersistenceError() from e


@router.delete("/{template_id}")
async def delete_template(
    template_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(RBACDependency(Permission.TEMPLATE_MANAGE))
):
    try:
        template = _get_template(db, template_id)
        db.delete(template)
        db.commit()

        logger.info(f"Template {template_id} deleted by {current_user.email}")
        return {"success": True, "id": template_id}

    except DeliveryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting template {template_id}: {str(e)}")
        raise PersistenceError() from e
