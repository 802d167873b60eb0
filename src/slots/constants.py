"""Default slot table for side-content placement.

Repeating intervals share 12 as a common multiple and take distinct
residues mod 12 (sentiment 0/6, insight 3/9, quiz 1, events 5,
community pulse 10), single cards sit on residues 4 and 2, so the table
is collision-free at every horizon.
"""

from src.content.models import CardType
from src.slots.models import SlotRule


DEFAULT_SLOT_RULES: tuple[SlotRule, ...] = (
    SlotRule(
        card_type=CardType.SENTIMENT,
        every_n=6,
        offset=0,
        description="Keyword sentiment analysis cards",
    ),
    SlotRule(
        card_type=CardType.INSIGHT,
        every_n=6,
        offset=3,
        description="Story momentum and social proof cards",
    ),
    SlotRule(
        card_type=CardType.QUIZ,
        every_n=12,
        offset=1,
        description="Interactive quiz questions",
    ),
    SlotRule(
        card_type=CardType.EVENTS,
        every_n=12,
        offset=5,
        description="Local events listing",
    ),
    SlotRule(
        card_type=CardType.COMMUNITY_PULSE,
        every_n=12,
        offset=10,
        description="Community discussion highlights",
    ),
    SlotRule(
        card_type=CardType.FLASHBACK,
        single_position=16,
        description="Stories from around this time last month",
    ),
    SlotRule(
        card_type=CardType.PARLIAMENTARY_DIGEST,
        single_position=26,
        description="Weekly digest of routine votes",
    ),
)

# Number of story positions simulated by the startup collision check
DEFAULT_COLLISION_HORIZON = 50
