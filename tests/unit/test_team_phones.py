"""Unit tests for the team phone repository."""
import pytest

from app.core.errors import NotFoundError
from app.services.team.repository import TeamPhoneRepository

SEED = """
team_phones:
  - name: Alex
    phone: "+12405550001"
    ring_order: 2
  - name: Sam
    phone: "240-555-0002"
    ring_order: 1
  - name: Weekend line
    phone: "+12405550003"
    enabled: false
"""


class TestTeamPhoneRepository:
    """Test team phone lookups and seeding."""

    @pytest.mark.asyncio
    async def test_seed_from_yaml(self, test_db, tmp_path):
        seed_file = tmp_path / "team_phones.yaml"
        seed_file.write_text(SEED)
        repository = TeamPhoneRepository(test_db)

        assert await repository.seed_from_yaml(str(seed_file)) == 3

        enabled = await repository.list_enabled()
        assert [p.name for p in enabled] == ["Sam", "Alex"]
        assert await repository.count() == 3

    @pytest.mark.asyncio
    async def test_seed_skips_populated_table(self, test_db, tmp_path, add_team_phones):
        seed_file = tmp_path / "team_phones.yaml"
        seed_file.write_text(SEED)
        await add_team_phones(("Existing", "+12405559999"))

        assert await TeamPhoneRepository(test_db).seed_from_yaml(str(seed_file)) == 0
        assert await TeamPhoneRepository(test_db).count() == 1

    @pytest.mark.asyncio
    async def test_missing_seed_file(self, test_db, tmp_path):
        assert await TeamPhoneRepository(test_db).seed_from_yaml(str(tmp_path / "nope.yaml")) == 0

    @pytest.mark.asyncio
    async def test_find_by_phone_ignores_format(self, test_db, add_team_phones):
        await add_team_phones(("Alex", "+12405550001"), ("Sam", "240-555-0002"))
        repository = TeamPhoneRepository(test_db)

        assert (await repository.find_by_phone("2405550002")).name == "Sam"
        assert (await repository.find_by_phone("+1 (240) 555-0001")).name == "Alex"
        assert await repository.find_by_phone("+19995550000") is None
        assert await repository.find_by_phone(None) is None

    @pytest.mark.asyncio
    async def test_update(self, test_db):
        repository = TeamPhoneRepository(test_db)
        team_phone = await repository.create("Alex", "+12405550001")

        updated = await repository.update(team_phone.id, enabled=False, name=None)

        assert updated.enabled is False
        assert updated.name == "Alex"
        with pytest.raises(NotFoundError):
            await repository.update(999, enabled=True)
