"""Centralized constants for gated-notes.

All magic numbers and file-format markers live here so every layer
imports from a single source of truth.
"""

# ---------- Deck files ----------
DECK_FILE_NAME = "_flashcards.json"

# ---------- Finalized notes ----------
SPLIT_TAG = "---GATED-NOTES-SPLIT---"
PARA_CLASS = "gn-paragraph"
PARA_ID_ATTR = "data-para-id"
PARA_MD_ATTR = "data-gn-md"
SENTINEL_HTML = '<br class="gn-sentinel">'

# ---------- Time ----------
ONE_MINUTE_MS = 60_000
ONE_HOUR_MS = 3_600_000
ONE_DAY_MS = 86_400_000

# ---------- Scheduler ----------
MIN_EASE_FACTOR = 1.3
DEFAULT_EASE_FACTOR = 2.5
AGAIN_EASE_PENALTY = 0.2
HARD_EASE_PENALTY = 0.15
EASY_EASE_BONUS = 0.15
HARD_INTERVAL_MULTIPLIER = 1.2
GRADUATING_INTERVAL_DAYS = 1
EASY_GRADUATING_INTERVAL_DAYS = 4
DEFAULT_LEARNING_STEPS = (1, 10)  # minutes
DEFAULT_RELEARN_STEPS = (10,)  # minutes
DEFAULT_BURY_DELAY_HOURS = 24

# ---------- Aligner ----------
BOW_WEIGHT = 0.3
LONGEST_RUN_WEIGHT = 0.7
ALIGN_SCORE_THRESHOLD = 0.5
IMAGE_TAG_PREFIX = "[[IMAGE HASH="
