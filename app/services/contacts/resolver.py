"""Phone number -> customer identity resolution and linking."""
import logging
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.errors import NotFoundError, PhoneAlreadyLinkedError
from app.db.models import Customer, PhoneLink, phone_digits
from app.services.phone.normalizer import format_e164, is_matchable, normalize_phone

logger = logging.getLogger(__name__)


class ContactIdentity(BaseModel):
    """Who a phone number belongs to."""

    phone: str  # canonical key
    customer_id: int
    display_name: str
    contact_name: Optional[str] = None
    linked: bool = True  # False when matched through the legacy customers.phone column

    @property
    def label(self) -> str:
        return self.contact_name or self.display_name


def require_phone_key(raw_phone: str) -> str:
    key = normalize_phone(raw_phone)
    if not is_matchable(key):
        raise ValueError(f"Unusable phone number: {raw_phone!r}")
    return key


class ContactResolver:
    """Maps canonical phone keys to customers through PhoneLink rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, raw_phone: str) -> Optional[ContactIdentity]:
        """Identity for one number, or None."""
        key = normalize_phone(raw_phone)
        if not is_matchable(key):
            return None
        return (await self.resolve_many([key])).get(key)

    async def resolve_many(self, raw_phones: Iterable[str]) -> Dict[str, ContactIdentity]:
        """
        Resolve many numbers at once.

        PhoneLink rows win; numbers without a link fall back to a suffix match
        against the free-form ``customers.phone`` column.

        Returns:
            Mapping of canonical key -> identity for the numbers that resolved.
        """
        keys = {normalize_phone(p) for p in raw_phones}
        keys = {k for k in keys if is_matchable(k)}
        if not keys:
            return {}

        identities: Dict[str, ContactIdentity] = {}
        result = await self.db.execute(
            select(PhoneLink)
            .where(PhoneLink.phone.in_(keys))
            .options(selectinload(PhoneLink.customer))
        )
        for link in result.scalars().all():
            identities[link.phone] = ContactIdentity(
                phone=link.phone,
                customer_id=link.customer_id,
                display_name=link.customer.display_name,
                contact_name=link.contact_name,
            )

        remaining = keys - identities.keys()
        if remaining:
            identities.update(await self._match_legacy_customers(remaining))
        return identities

    async def _match_legacy_customers(self, keys: Iterable[str]) -> Dict[str, ContactIdentity]:
        keys = set(keys)
        stripped = phone_digits(Customer.phone)
        result = await self.db.execute(
            select(Customer).where(
                Customer.phone.is_not(None),
                or_(*[stripped.like(f"%{key}") for key in keys]),
            )
        )
        matches: Dict[str, ContactIdentity] = {}
        for customer in result.scalars().all():
            key = normalize_phone(customer.phone)
            if key in keys and key not in matches:
                matches[key] = ContactIdentity(
                    phone=key,
                    customer_id=customer.id,
                    display_name=customer.display_name,
                    linked=False,
                )
        return matches

    async def get_link(self, raw_phone: str) -> Optional[PhoneLink]:
        key = normalize_phone(raw_phone)
        result = await self.db.execute(select(PhoneLink).where(PhoneLink.phone == key))
        return result.scalar_one_or_none()

    async def links_for_customer(self, customer_id: int) -> List[PhoneLink]:
        result = await self.db.execute(
            select(PhoneLink)
            .where(PhoneLink.customer_id == customer_id)
            .order_by(PhoneLink.is_primary.desc(), PhoneLink.id)
        )
        return list(result.scalars().all())

    async def link(
        self,
        raw_phone: str,
        customer_id: int,
        contact_name: Optional[str] = None,
        is_primary: Optional[bool] = None,
    ) -> PhoneLink:
        """
        Attach an existing customer to a phone number.

        Raises:
            ValueError: The number can't be normalized
            NotFoundError: No such customer
            PhoneAlreadyLinkedError: The number belongs to another customer
        """
        key = require_phone_key(raw_phone)
        customer = await self.db.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")

        existing = await self.get_link(key)
        if existing is not None:
            return await self._relink_same_customer(existing, customer_id, contact_name)

        link = await self._add_link(key, customer_id, contact_name, is_primary)
        await self.db.commit()
        await self.db.refresh(link)
        logger.info(f"[CONTACTS] Linked {key} to customer {customer_id}")
        return link

    async def create_and_link(
        self,
        raw_phone: str,
        display_name: str,
        email: Optional[str] = None,
        company: Optional[str] = None,
        contact_name: Optional[str] = None,
    ) -> PhoneLink:
        """Create a customer from a name (plus optional email/company) and link the number."""
        key = require_phone_key(raw_phone)
        existing = await self.get_link(key)
        if existing is not None:
            raise PhoneAlreadyLinkedError(key, existing.customer_id)

        first_name, _, last_name = display_name.strip().partition(" ")
        customer = Customer(
            display_name=display_name.strip(),
            first_name=first_name or None,
            last_name=last_name.strip() or None,
            email=email,
            company=company,
            phone=format_e164(key),
        )
        self.db.add(customer)
        await self.db.flush()

        link = await self._add_link(key, customer.id, contact_name, True)
        await self.db.commit()
        await self.db.refresh(link)
        logger.info(f"[CONTACTS] Created customer {customer.id} ({customer.display_name}) for {key}")
        return link

    async def unlink(self, raw_phone: str) -> bool:
        link = await self.get_link(raw_phone)
        if link is None:
            return False
        await self.db.delete(link)
        await self.db.commit()
        logger.info(f"[CONTACTS] Unlinked {link.phone} from customer {link.customer_id}")
        return True

    async def _add_link(
        self,
        key: str,
        customer_id: int,
        contact_name: Optional[str],
        is_primary: Optional[bool],
    ) -> PhoneLink:
        if is_primary is None:
            is_primary = not await self.links_for_customer(customer_id)
        link = PhoneLink(
            phone=key,
            customer_id=customer_id,
            contact_name=contact_name,
            is_primary=is_primary,
        )
        self.db.add(link)
        try:
            await self.db.flush()
        except IntegrityError:
            # Lost a race with a concurrent link of the same number.
            await self.db.rollback()
            winner = await self.get_link(key)
            raise PhoneAlreadyLinkedError(key, winner.customer_id if winner else -1)

        if is_primary:
            await self.db.execute(
                update(PhoneLink)
                .where(PhoneLink.customer_id == customer_id, PhoneLink.id != link.id)
                .values(is_primary=False)
                .execution_options(synchronize_session=False)
            )
        return link

    async def _relink_same_customer(
        self, existing: PhoneLink, customer_id: int, contact_name: Optional[str]
    ) -> PhoneLink:
        if existing.customer_id != customer_id:
            logger.warning(
                f"[CONTACTS] Refusing to link {existing.phone} to customer {customer_id}: "
                f"already linked to {existing.customer_id}"
            )
            raise PhoneAlreadyLinkedError(existing.phone, existing.customer_id)
        if contact_name is not None and contact_name != existing.contact_name:
            existing.contact_name = contact_name
            await self.db.commit()
            await self.db.refresh(existing)
        return existing
