import os

from dotenv import load_dotenv

load_dotenv()

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")

# Advisory (LLM) configuration
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "auto")
LLM_DEFAULT_TIER = os.getenv("LLM_DEFAULT_TIER", "fast")
LLM_MODEL_FAST = os.getenv("LLM_MODEL_FAST", "")
LLM_MODEL_STANDARD = os.getenv("LLM_MODEL_STANDARD", "")
LLM_MODEL_HIGH = os.getenv("LLM_MODEL_HIGH", "")
ADVISORY_TIMEOUT_SECONDS = float(os.getenv("ADVISORY_TIMEOUT_SECONDS", "20"))

DATABASE_PATH = os.getenv("DATABASE_PATH", "hospflow.db")

DATABASE_URL = os.getenv("DATABASE_URL", "")
DATABASE_MAX_CONNECTIONS = int(os.getenv("DATABASE_MAX_CONNECTIONS", "5"))
SEED_DEMO_PATIENTS = os.getenv("SEED_DEMO_PATIENTS", "false").lower() in ("1", "true", "yes", "on")

# Corridor rules
VENOUS_ACCESS_MAX_HOURS = int(os.getenv("VENOUS_ACCESS_MAX_HOURS", "96"))
NEW_RECORD_TTL_SECONDS = int(os.getenv("NEW_RECORD_TTL_SECONDS", "90"))
SEARCH_DEBOUNCE_MS = int(os.getenv("SEARCH_DEBOUNCE_MS", "250"))

# Partial day/month dates in free text are read in the hospital's wall-clock time
HOSPITAL_TIMEZONE = os.getenv("HOSPITAL_TIMEZONE", "America/Sao_Paulo")
