# 📂 backend/fulfillment/utils.py — shared helpers (logging, names, secrets)
# -----------------------------------------------------------------------------
# Here:
# - get_logger: stdout logger for storeskull.* names (one handler per logger),
# - email_local_part / display_username: how customers are named on the panel,
# - generate_password: throwaway password for new panel accounts.

from __future__ import annotations

import logging
import secrets
import string
import sys
from typing import Optional

from .config import get_settings

LOG_FORMAT = "[%(asctime)s][%(levelname)s] %(name)s: %(message)s"


# =========================
# 📝 Logging
# =========================
def get_logger(name: str) -> logging.Logger:
    """
    Returns a logger writing to stdout with the project format.
    Safe to call repeatedly: the handler is attached only once.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(h)
    logger.setLevel(get_settings().LOG_LEVEL.upper())
    return logger


# =========================
# 👤 Customer naming
# =========================
def email_local_part(email: Optional[str]) -> str:
    """'abe@example.com' → 'abe'. Empty input gives ''."""
    if not email:
        return ""
    return email.split("@", 1)[0]


def display_username(username: Optional[str], email: Optional[str]) -> str:
    """Explicit username wins, otherwise the local part of the email."""
    return username or email_local_part(email)


# =========================
# 🔑 Secrets
# =========================
PASSWORD_ALPHABET = string.ascii_letters + string.digits


def generate_password(length: int = 16) -> str:
    """Random password from letters and digits."""
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))
