"""Configuration for the open-search matching engine.

All scoring weights and tier cutoffs centralized here - tune them without
touching the matching code. Deployment settings come from the environment
(a local .env file is honoured).
"""
import os
from dotenv import load_dotenv

load_dotenv()

# Pain contribution by band: (lowest pain level in band, points)
# Checked top-down, first match wins; anything below the last band scores PAIN_FLOOR.
PAIN_BANDS = [
    (8, 10),  # 8-10/10 severe
    (5, 7),   # 5-7/10 moderate
    (2, 4),   # 2-4/10 mild
]
PAIN_FLOOR = 1  # 0-1/10, routine check

DURATION_WEIGHTS = {
    "today": 8,
    "days": 6,
    "week": 4,
    "longer": 2,
}

# Only the single most severe flag counts
SYMPTOM_WEIGHTS = {
    "swelling": 9,
    "bleeding": 7,
    "sensitivity": 5,
    "cosmetic_only": 2,
}

# Tier cutoffs, lower bound inclusive, highest first
TIER_CUTOFFS = [
    ("emergency", 20),
    ("high", 14),
    ("moderate", 8),
]
DEFAULT_TIER = "routine"

# Categorical pain answers from the patient questionnaire
PAIN_BAND_LEVELS = {
    "severe": 9,
    "moderate": 6,
    "mild": 3,
    "none": 0,
}

# Travel answers meaning "no distance limit"
UNBOUNDED_TRAVEL_VALUES = {"any", "unbounded"}

# API Configuration
API_BASE_URL = os.getenv("DENTMATCH_API_BASE_URL", "http://localhost:5000")
HTTP_TIMEOUT = int(os.getenv("DENTMATCH_HTTP_TIMEOUT", "15"))
HTTP_MAX_RETRIES = int(os.getenv("DENTMATCH_HTTP_MAX_RETRIES", "3"))

# Sessions
SESSION_TIMEOUT_MINUTES = int(os.getenv("DENTMATCH_SESSION_TIMEOUT_MINUTES", "30"))
DATABASE_URL = os.getenv("DENTMATCH_DATABASE_URL", "sqlite:///match_sessions.db")

LOG_LEVEL = os.getenv("DENTMATCH_LOG_LEVEL", "INFO")
