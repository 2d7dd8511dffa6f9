"""Process-level settings for ttscore, read from the environment."""

from __future__ import annotations

import os

LOG_LEVEL = os.environ.get("TTSCORE_LOG_LEVEL", "INFO")

# Bounds applied to custom scoring formulas before they are evaluated.
FORMULA_MAX_LENGTH = int(os.environ.get("TTSCORE_FORMULA_MAX_LENGTH", "500"))
FORMULA_MAX_NODES = int(os.environ.get("TTSCORE_FORMULA_MAX_NODES", "200"))
FORMULA_MAX_DEPTH = int(os.environ.get("TTSCORE_FORMULA_MAX_DEPTH", "32"))

# Parsed formulas kept in memory; organizers rarely have more than a handful.
FORMULA_CACHE_SIZE = int(os.environ.get("TTSCORE_FORMULA_CACHE_SIZE", "128"))
