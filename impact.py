"""Environmental impact figures derived from collected pickups."""
from collections import namedtuple
from decimal import Decimal, ROUND_HALF_UP

from models import COLLECTED

# kilograms per unit
ITEM_WEIGHTS = {
    'Laptop': 2.2,
    'Mobile': 0.2,
    'Tablet': 0.5,
    'Accessories': 0.15,
    'Batteries': 0.1,
}
DEFAULT_WEIGHT = 1.0

EMISSIONS_PER_KG = 1.44
TOXINS_PER_KG = 0.05
KM_PER_KG_EMISSIONS = 4


class Impact(namedtuple('Impact', ['mass', 'emissions', 'toxins'])):
    """Diverted mass, emissions offset and toxin mass, all in kilograms."""
    __slots__ = ()

    @property
    def driving_km(self):
        """Car distance with the same emissions, in whole kilometres."""
        return int(_round(self.emissions * KM_PER_KG_EMISSIONS, 0))


def item_weight(category):
    return ITEM_WEIGHTS.get(category, DEFAULT_WEIGHT)


def _round(value, places):
    # half-up on the exact binary value, like the dashboard always displayed
    exp = Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(exp, rounding=ROUND_HALF_UP))


def total_mass(requests):
    return sum(r.quantity * item_weight(r.category) for r in requests if r.status == COLLECTED)


def compute_impact(requests):
    """Reduce a request set to its :class:`Impact`.

    Only requests in the Collected state count; the set is not modified.
    """
    mass = total_mass(requests)
    return Impact(
        mass=_round(mass, 1),
        emissions=_round(mass * EMISSIONS_PER_KG, 1),
        toxins=_round(mass * TOXINS_PER_KG, 2),
    )
