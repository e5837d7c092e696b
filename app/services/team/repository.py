"""Team phone (call-forwarding target) repository."""
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.db.models import TeamPhone
from app.services.phone.normalizer import normalize_phone, phones_match

logger = logging.getLogger(__name__)


class TeamPhoneRepository:
    """Reads and configures the phones an inbound call fans out to."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def count(self) -> int:
        result = await self.db.execute(select(func.count(TeamPhone.id)))
        return result.scalar_one()

    async def list_all(self) -> List[TeamPhone]:
        result = await self.db.execute(select(TeamPhone).order_by(TeamPhone.ring_order, TeamPhone.id))
        return list(result.scalars().all())

    async def list_enabled(self) -> List[TeamPhone]:
        """Enabled phones in ring order."""
        result = await self.db.execute(
            select(TeamPhone)
            .where(TeamPhone.enabled.is_(True))
            .order_by(TeamPhone.ring_order, TeamPhone.id)
        )
        return list(result.scalars().all())

    async def find_by_phone(self, raw_phone: Optional[str]) -> Optional[TeamPhone]:
        """Team member whose number matches, whatever format either side uses."""
        if not raw_phone:
            return None
        for team_phone in await self.list_all():
            if phones_match(team_phone.phone, raw_phone):
                return team_phone
        return None

    async def create(self, name: str, phone: str, enabled: bool = True, ring_order: int = 0) -> TeamPhone:
        team_phone = TeamPhone(name=name, phone=phone, enabled=enabled, ring_order=ring_order)
        self.db.add(team_phone)
        await self.db.commit()
        await self.db.refresh(team_phone)
        logger.info(f"[TEAM] Added {name} ({normalize_phone(phone)})")
        return team_phone

    async def update(self, team_phone_id: int, **changes) -> TeamPhone:
        team_phone = await self.db.get(TeamPhone, team_phone_id)
        if team_phone is None:
            raise NotFoundError(f"Team phone {team_phone_id} not found")
        for name, value in changes.items():
            if value is not None:
                setattr(team_phone, name, value)
        await self.db.commit()
        await self.db.refresh(team_phone)
        return team_phone

    async def seed_from_yaml(self, path: str) -> int:
        """
        Load team phones from a YAML file if the table is empty.

        Expected format::

            team_phones:
              - name: Alex
                phone: "+12405550001"
                ring_order: 1

        Returns:
            Number of rows inserted.
        """
        seed_file = Path(path)
        if not seed_file.exists():
            logger.warning(f"[TEAM] Seed file {seed_file} does not exist")
            return 0
        if await self.count() > 0:
            return 0

        with open(seed_file, "r") as f:
            data = yaml.safe_load(f) or {}

        entries = data.get("team_phones", [])
        for index, entry in enumerate(entries):
            self.db.add(
                TeamPhone(
                    name=entry["name"],
                    phone=str(entry["phone"]),
                    enabled=entry.get("enabled", True),
                    ring_order=entry.get("ring_order", index),
                )
            )
        await self.db.commit()
        logger.info(f"[TEAM] Seeded {len(entries)} team phones from {seed_file}")
        return len(entries)
