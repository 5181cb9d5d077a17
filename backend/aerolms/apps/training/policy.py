# backend/aerolms/apps/training/policy.py

from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class PassWindowPolicy(str, enum.Enum):
    """
    Which passed attempt anchors the "failed attempts since last pass" window.

    - IGNORE_DELETED_PASSES: only non-deleted passes count; a soft-deleted
      pass falls back to the previous pass (or all-time).
    - HONOR_DELETED_PASSES: a soft-deleted pass still resets the window.
    """

    IGNORE_DELETED_PASSES = "ignore_deleted_passes"
    HONOR_DELETED_PASSES = "honor_deleted_passes"


@dataclass(frozen=True)
class EligibilityPolicy:
    max_failed_attempts: int = 2
    renewal_window_months: int = 1
    pass_window: PassWindowPolicy = PassWindowPolicy.IGNORE_DELETED_PASSES


DEFAULT_POLICY = EligibilityPolicy()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer in environment, using default", extra={"variable": name, "value": raw})
        return default


def load_policy() -> EligibilityPolicy:
    raw_window = os.getenv("TRAINING_PASS_WINDOW_POLICY", PassWindowPolicy.IGNORE_DELETED_PASSES.value)
    try:
        pass_window = PassWindowPolicy(raw_window.strip().lower())
    except ValueError:
        logger.warning("Unknown pass window policy, using default", extra={"value": raw_window})
        pass_window = PassWindowPolicy.IGNORE_DELETED_PASSES

    return EligibilityPolicy(
        max_failed_attempts=_int_env("TRAINING_MAX_FAILED_ATTEMPTS", 2),
        renewal_window_months=_int_env("TRAINING_RENEWAL_WINDOW_MONTHS", 1),
        pass_window=pass_window,
    )


def default_validity_months() -> int:
    return _int_env("TRAINING_DEFAULT_VALIDITY_MONTHS", 12)


def certificate_number_max_retries() -> int:
    return max(1, _int_env("CERTIFICATE_NUMBER_MAX_RETRIES", 5))
