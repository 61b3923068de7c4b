"""Config hash of the engine tuning.

Shared by telemetry events and the progression simulation CSV so results
can be tied to the exact probability curve that produced them.
"""
import hashlib
import json

from dreamslot.config import settings
from dreamslot.logic.models import EngineConfig


def get_config_hash(config: EngineConfig | None = None) -> str:
    """Return 16-char hex hash of the engine tuning snapshot."""
    config = config or settings.engine
    config_snapshot = {
        "hidden_threshold_pulls": config.hidden_threshold_pulls,
        "hidden_threshold_count": config.hidden_threshold_count,
        "guaranteed_threshold_pulls": config.guaranteed_threshold_pulls,
        "win_probabilities": list(config.win_probabilities),
        "probability_after_all_unlocked": config.probability_after_all_unlocked,
        "malfunction_probability": config.malfunction_probability,
    }
    canonical = json.dumps(config_snapshot, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()[:16]
