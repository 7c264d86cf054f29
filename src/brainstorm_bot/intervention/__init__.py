# brainstorm_bot/intervention/__init__.py
"""Deciding when the bot speaks up unprompted, and honouring users' activity controls."""

from brainstorm_bot.intervention.decision_engine import (  # noqa: F401
    InterventionDecisionEngine,
    InterventionThresholds,
    calculate_priority,
    no_intervention,
)
from brainstorm_bot.intervention.manual_control import ManualControlManager  # noqa: F401
from brainstorm_bot.intervention.learning import (  # noqa: F401
    LearningModule,
    calculate_effectiveness,
    reaction_from_rating,
)
