"""
Deal stage vocabulary and progression rules for the sales pipeline.

Stage keys, their badge labels, the linear order used for swipes and
analytics, temperatures, and follow-up date presets.
"""

from datetime import date, datetime, timedelta
from typing import Optional, Union

# Every stage key, in board order
STAGES = [
    'prospect',
    'cold_call',
    'appointment_set',
    'presentation_made',
    'proposal_sent',
    'statement_analysis',
    'negotiating',
    'follow_up',
    'documents_sent',
    'documents_signed',
    'sold',
    'dead',
    'installation_scheduled',
    'active_merchant',
]

# Badge labels
STAGE_SHORT_LABELS = {
    'prospect': 'Prospect',
    'cold_call': 'Cold Call',
    'appointment_set': 'Appt Set',
    'presentation_made': 'Presented',
    'proposal_sent': 'Proposal',
    'statement_analysis': 'Analysis',
    'negotiating': 'Negotiating',
    'follow_up': 'Follow-Up',
    'documents_sent': 'Docs Sent',
    'documents_signed': 'Signed',
    'sold': 'Won',
    'dead': 'Lost',
    'installation_scheduled': 'Install',
    'active_merchant': 'Active',
}

# Column headers on the kanban board
STAGE_LABELS = {
    'prospect': 'Prospects',
    'cold_call': 'Cold Call',
    'appointment_set': 'Appointment Set',
    'presentation_made': 'Presentation Made',
    'proposal_sent': 'Proposal Sent',
    'statement_analysis': 'Statement Analysis',
    'negotiating': 'Negotiating',
    'follow_up': 'Follow Up',
    'documents_sent': 'Documents Sent',
    'documents_signed': 'Docs Signed',
    'sold': 'Sold',
    'dead': 'Dead',
    'installation_scheduled': 'Install Scheduled',
    'active_merchant': 'Active Merchant',
}

# Linear progression used by swipes and stage analytics
STAGE_ORDER = STAGES[:12]

TERMINAL_STAGES = frozenset({'sold', 'dead', 'active_merchant'})

# Stages after a win; reached only by an explicit stage change
POST_SALE_STAGES = ('installation_scheduled', 'active_merchant')

TEMPERATURES = ('hot', 'warm', 'cold')
TEMPERATURE_SORT = {'hot': 0, 'warm': 1, 'cold': 2}
DEFAULT_TEMPERATURE = 'warm'

# (days, label) presets offered when scheduling the next follow-up
FOLLOW_UP_PRESETS = [
    (1, 'Tomorrow'),
    (2, '2 days'),
    (3, '3 days'),
    (5, '5 days'),
    (7, '1 week'),
    (14, '2 weeks'),
]
DEFAULT_FOLLOW_UP_DAYS = 3

# Stage -> deal status when the stage is entered
STAGE_STATUS = {
    'sold': 'won',
    'installation_scheduled': 'won',
    'active_merchant': 'won',
    'dead': 'lost',
}


def is_valid_stage(stage: str) -> bool:
    return stage in STAGE_SHORT_LABELS


def is_terminal(stage: str) -> bool:
    return stage in TERMINAL_STAGES


def stage_label(stage: str, short: bool = True) -> str:
    """Label for a stage key; unknown keys render as the key itself."""
    labels = STAGE_SHORT_LABELS if short else STAGE_LABELS
    return labels.get(stage, stage)


def next_stage(stage: str) -> Optional[str]:
    """
    The stage a right swipe moves to.

    Returns None for terminal stages, post-sale stages and anything not in
    STAGE_ORDER. ``dead`` is never reached by progression.
    """
    if stage in TERMINAL_STAGES or stage not in STAGE_ORDER:
        return None
    candidate = STAGE_ORDER[STAGE_ORDER.index(stage) + 1]
    if candidate == 'dead':
        return None
    return candidate


def previous_stage(stage: str) -> Optional[str]:
    """The stage a left swipe moves back to; None at the first stage."""
    if stage in TERMINAL_STAGES or stage not in STAGE_ORDER:
        return None
    index = STAGE_ORDER.index(stage)
    if index == 0:
        return None
    return STAGE_ORDER[index - 1]


def apply_swipe(stage: str, direction: str) -> Optional[str]:
    """
    Resolve a swipe gesture to the new stage.

    Args:
        stage: Current stage key
        direction: 'right' (advance) or 'left' (step back)

    Returns:
        The new stage, or None when the deal does not move
    """
    if direction == 'right':
        return next_stage(stage)
    if direction == 'left':
        return previous_stage(stage)
    raise ValueError(f"Unknown swipe direction: {direction}")


def stage_index(stage: str) -> int:
    """Position in STAGE_ORDER; stages outside it sort last."""
    try:
        return STAGE_ORDER.index(stage)
    except ValueError:
        return len(STAGE_ORDER)


def temperature_rank(temperature: Optional[str]) -> int:
    return TEMPERATURE_SORT.get(temperature or DEFAULT_TEMPERATURE, TEMPERATURE_SORT[DEFAULT_TEMPERATURE])


def follow_up_date(days: int, today: Optional[Union[date, datetime]] = None) -> Union[date, datetime]:
    """``today + days``; keeps the type (date or datetime) of ``today``."""
    if today is None:
        today = date.today()
    return today + timedelta(days=int(days))


def follow_up_presets(today: Optional[date] = None):
    """Preset choices with the concrete date each one resolves to."""
    return [
        {
            'days': days,
            'label': label,
            'date': follow_up_date(days, today).isoformat(),
            'recommended': days == DEFAULT_FOLLOW_UP_DAYS,
        }
        for days, label in FOLLOW_UP_PRESETS
    ]
