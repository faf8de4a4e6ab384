import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlmodel import Session, select

from grocery.constants.contact_status import ContactStatus
from grocery.database import get_session
from grocery.dependencies.auth import AuthContext, require_admin
from grocery.exceptions import NotFoundError
from grocery.models.contact import Contact
from grocery.schemas.contact_schemas import ContactCreate, ContactStatusUpdate
from grocery.services.email_service import EmailClient, admin_recipients, get_email_client
from grocery.utils.pagination import paginate
from grocery.utils.response import api_response
from grocery.utils.template import render_template

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_contact_or_404(session: Session, contact_id: int) -> Contact:
    contact = session.get(Contact, contact_id)
    if not contact:
        raise NotFoundError("Contact submission not found")
    return contact


@router.post("")
def submit_contact_form(
    data: ContactCreate,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    email_client: EmailClient = Depends(get_email_client),
):
    contact = Contact(
        name=data.name,
        email=data.email.lower(),
        subject=data.subject,
        message=data.message,
        status=ContactStatus.pending.value,
    )
    session.add(contact)
    session.commit()
    session.refresh(contact)

    admin_email = admin_recipients()
    if admin_email:
        background_tasks.add_task(
            email_client.send,
            admin_email,
            f"Contact form: {contact.subject}",
            render_template("emails/contact_received.html", contact=contact),
        )

    logger.info(f"Contact submission {contact.id} received")
    return api_response(
        "Contact form submitted successfully",
        contact,
        status_code=status.HTTP_201_CREATED,
    )


# -------- ADMIN --------

@router.get("")
def list_contact_submissions(
    status_filter: Optional[ContactStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    session: Session = Depends(get_session),
    _: AuthContext = Depends(require_admin),
):
    query = select(Contact)
    if status_filter:
        query = query.where(Contact.status == status_filter.value)
    query = query.order_by(Contact.created_at.desc(), Contact.id.desc())

    contacts, pagination = paginate(session=session, query=query, page=page, limit=limit)

    return api_response(
        "Contact submissions retrieved successfully",
        contacts,
        pagination=pagination,
    )


@router.put("/{contact_id}/status")
def update_contact_status(
    contact_id: int,
    data: ContactStatusUpdate,
    session: Session = Depends(get_session),
    _: AuthContext = Depends(require_admin),
):
    contact = _get_contact_or_404(session, contact_id)

    contact.status = data.status.value
    contact.updated_at = datetime.utcnow()
    session.add(contact)
    session.commit()
    session.refresh(contact)

    return api_response("Contact status updated successfully", contact)


@router.delete("/{contact_id}")
def delete_contact_submission(
    contact_id: int,
    session: Session = Depends(get_session),
    _: AuthContext = Depends(require_admin),
):
    contact = _get_contact_or_404(session, contact_id)

    session.delete(contact)
    session.commit()

    logger.info(f"Deleted contact submission {contact_id}")
    return api_response("Contact submission deleted successfully")
