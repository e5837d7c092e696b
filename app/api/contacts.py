"""Contact linking API endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.core.dependencies import get_contact_resolver
from app.services.contacts.resolver import ContactIdentity, ContactResolver

router = APIRouter()
logger = logging.getLogger(__name__)


class LinkRequest(BaseModel):
    """Link a number to an existing customer."""
    phone: str
    customer_id: int
    contact_name: Optional[str] = None
    is_primary: Optional[bool] = None


class CreateAndLinkRequest(BaseModel):
    """Create a customer and link the number to it."""
    phone: str
    display_name: str = Field(min_length=1)
    email: Optional[str] = None
    company: Optional[str] = None
    contact_name: Optional[str] = None


class PhoneLinkResponse(BaseModel):
    """Phone link response model."""
    id: int
    phone: str
    customer_id: int
    contact_name: Optional[str] = None
    is_primary: bool

    class Config:
        from_attributes = True


@router.get("/api/contacts/{phone}", response_model=ContactIdentity)
async def resolve_contact(
    phone: str,
    resolver: ContactResolver = Depends(get_contact_resolver),
):
    """Who a number belongs to."""
    identity = await resolver.resolve(phone)
    if identity is None:
        raise HTTPException(status_code=404, detail=f"No contact for {phone}")
    return identity


@router.post("/api/contacts/link", response_model=PhoneLinkResponse)
async def link_contact(
    body: LinkRequest,
    resolver: ContactResolver = Depends(get_contact_resolver),
):
    """Attach an existing customer. 409 if the number belongs to someone else."""
    try:
        return await resolver.link(body.phone, body.customer_id, body.contact_name, body.is_primary)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/api/contacts/create-and-link", response_model=PhoneLinkResponse)
async def create_and_link_contact(
    body: CreateAndLinkRequest,
    resolver: ContactResolver = Depends(get_contact_resolver),
):
    """Create a customer from the link form and attach the number."""
    try:
        return await resolver.create_and_link(
            body.phone, body.display_name, body.email, body.company, body.contact_name
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.delete("/api/contacts/{phone}")
async def unlink_contact(
    phone: str,
    resolver: ContactResolver = Depends(get_contact_resolver),
):
    """Remove a number's link."""
    if not await resolver.unlink(phone):
        raise HTTPException(status_code=404, detail=f"{phone} is not linked")
    return {"success": True}
