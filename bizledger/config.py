import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./bizledger.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Ledger numeric policy
# Number of digits after the decimal point for the business currency (2 -> cents)
CURRENCY_MINOR_UNITS = int(os.getenv("CURRENCY_MINOR_UNITS", "2"))
if not 0 <= CURRENCY_MINOR_UNITS <= 4:
    raise ValueError(f"CURRENCY_MINOR_UNITS must be between 0 and 4, got {CURRENCY_MINOR_UNITS}")

# Shown in reports and reminders for clients without a usable name
CLIENT_NAME_PLACEHOLDER = os.getenv("CLIENT_NAME_PLACEHOLDER", "Unnamed client")

# Default due date offset for installments confirmed without an explicit date
DEFAULT_INSTALLMENT_DAYS = int(os.getenv("DEFAULT_INSTALLMENT_DAYS", "7"))

# API access tokens as comma separated "token:actor" pairs, e.g. "abc123:front-desk,xyz:telegram-bot"
# The actor name is recorded on transactions and audit log entries
API_TOKENS = {}
for _pair in os.getenv("API_TOKENS", "").split(","):
    _token, _, _actor = _pair.strip().partition(":")
    if _token:
        API_TOKENS[_token] = _actor or _token

if not API_TOKENS:
    import warnings

    warnings.warn(
        "API_TOKENS not set! Ledger endpoints are open - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )

# Frontend origins allowed by CORS
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
