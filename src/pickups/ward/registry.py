"""Ward registry: canonical list of wards, seeding and activation.

Wards are addressed by number everywhere outside the aggregate; the registry
turns numbers into aggregates and raises ``NotFoundError`` for unknown wards.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Integer, String
from protean.utils.globals import current_domain

from pickups.access import Caller, require_admin
from pickups.domain import pickups
from pickups.errors import NotFoundError
from pickups.store import fetch_all
from pickups.ward.ward import Ward, validate_ward_number, ward_id_for

logger = structlog.get_logger(__name__)

KATHMANDU_WARDS = [
    (1, "Ward 1 - Thankot", "वडा १ - थानकोट"),
    (2, "Ward 2 - Nagarjun", "वडा २ - नागार्जुन"),
    (3, "Ward 3 - Goldhunga", "वडा ३ - गोल्ढुंगा"),
    (4, "Ward 4 - Ranipauwa", "वडा ४ - रानीपौवा"),
    (5, "Ward 5 - Swayambhu", "वडा ५ - स्वयम्भू"),
    (6, "Ward 6 - Chhetrapati", "वडा ६ - छेत्रपाटी"),
    (7, "Ward 7 - Maru", "वडा ७ - मारू"),
    (8, "Ward 8 - Kantipath", "वडा ८ - कान्तिपथ"),
    (9, "Ward 9 - Lazimpat", "वडा ९ - लाजिम्पाट"),
    (10, "Ward 10 - Maharajgunj", "वडा १० - महाराजगंज"),
    (11, "Ward 11 - Budhanilkantha", "वडा ११ - बूढानीलकण्ठ"),
    (12, "Ward 12 - Tokha", "वडा १२ - टोखा"),
    (13, "Ward 13 - Gongabu", "वडा १३ - गोंगबू"),
    (14, "Ward 14 - Samakhusi", "वडा १४ - सामाखुसी"),
    (15, "Ward 15 - Balaju", "वडा १५ - बालाजू"),
    (16, "Ward 16 - Teku", "वडा १६ - टेकू"),
    (17, "Ward 17 - Kalimati", "वडा १७ - कालीमाटी"),
    (18, "Ward 18 - Kalanki", "वडा १८ - कलंकी"),
    (19, "Ward 19 - Kirtipur", "वडा १९ - कीर्तिपुर"),
    (20, "Ward 20 - Panga", "वडा २० - पंगा"),
    (21, "Ward 21 - Sitapaila", "वडा २१ - सीतापाइला"),
    (22, "Ward 22 - Kuleshwor", "वडा २२ - कुलेश्वर"),
    (23, "Ward 23 - Bagbazar", "वडा २३ - बागबजार"),
    (24, "Ward 24 - Kamalpokhari", "वडा २४ - कमलपोखरी"),
    (25, "Ward 25 - Putalisadak", "वडा २५ - पुतलीसडक"),
    (26, "Ward 26 - Baneshwor", "वडा २६ - बानेश्वर"),
    (27, "Ward 27 - Minbhawan", "वडा २७ - मीनभवन"),
    (28, "Ward 28 - Naxal", "वडा २८ - नक्साल"),
    (29, "Ward 29 - Battisputali", "वडा २९ - बत्तीसपुतली"),
    (30, "Ward 30 - Gaushala", "वडा ३० - गौशाला"),
    (31, "Ward 31 - Sinamangal", "वडा ३१ - सिनामंगल"),
    (32, "Ward 32 - Koteshwor", "वडा ३२ - कोटेश्वर"),
]


class WardRegistry:
    """Lookup, seeding and activation of wards."""

    def get(self, ward_id: str) -> Ward:
        try:
            return current_domain.repository_for(Ward).get(ward_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError(f"Ward {ward_id} not found", ward_id=ward_id) from exc

    def get_by_number(self, ward_number: int) -> Ward:
        validate_ward_number(ward_number)
        return self.get(ward_id_for(ward_number))

    def list_wards(self) -> list[Ward]:
        return sorted(fetch_all(Ward), key=lambda ward: ward.number)

    def seed(self, wards=KATHMANDU_WARDS) -> int:
        """Create any missing wards. Existing wards are left untouched."""
        repo = current_domain.repository_for(Ward)
        existing = {ward.number for ward in fetch_all(Ward)}

        created = 0
        for number, name, name_alt in wards:
            if number in existing:
                continue
            repo.add(Ward.seed(number, name, name_alt))
            created += 1

        logger.info("Wards seeded", created=created, skipped=len(wards) - created)
        return created

    def set_active(self, caller: Caller, ward_number: int, active: bool) -> Ward:
        require_admin(caller)
        ward = self.get_by_number(ward_number)
        if active:
            ward.activate()
        else:
            ward.deactivate()
        current_domain.repository_for(Ward).add(ward)
        logger.info("Ward activation changed", ward_id=ward.id, is_active=ward.is_active)
        return ward


@pickups.command(part_of="Ward")
class SeedWards:
    """Create the canonical set of wards that do not exist yet."""

    actor_id: String(required=True, max_length=255)
    actor_role: String(required=True, max_length=20)


@pickups.command(part_of="Ward")
class ActivateWard:
    actor_id: String(required=True, max_length=255)
    actor_role: String(required=True, max_length=20)
    ward_number: Integer(required=True)


@pickups.command(part_of="Ward")
class DeactivateWard:
    actor_id: String(required=True, max_length=255)
    actor_role: String(required=True, max_length=20)
    ward_number: Integer(required=True)


@pickups.command_handler(part_of=Ward)
class WardRegistryHandler:
    @handle(SeedWards)
    def seed_wards(self, command):
        require_admin(Caller.from_values(command.actor_id, command.actor_role))
        return WardRegistry().seed()

    @handle(ActivateWard)
    def activate_ward(self, command):
        caller = Caller.from_values(command.actor_id, command.actor_role)
        return WardRegistry().set_active(caller, command.ward_number, True).id

    @handle(DeactivateWard)
    def deactivate_ward(self, command):
        caller = Caller.from_values(command.actor_id, command.actor_role)
        return WardRegistry().set_active(caller, command.ward_number, False).id
