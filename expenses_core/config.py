"""Environment-driven settings shared by the HTTP API and the CLI."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from .exceptions import ValidationError
from .validators import parse_amount
from .week import week_start_index

DEFAULT_INITIAL_AMOUNT = Decimal("500000.00")
STORAGE_BACKENDS = ("json", "mongodb")


@dataclass(frozen=True)
class Settings:
    env: str = "prod"
    allowed_origins: Tuple[str, ...] = ()
    jwt_secret: Optional[str] = None
    storage_backend: str = "json"
    data_dir: Path = Path("data")
    mongodb_uri: Optional[str] = None
    mongodb_database: str = "expenses"
    default_initial_amount: Decimal = DEFAULT_INITIAL_AMOUNT
    week_starts_on: str = "sunday"
    log_level: str = "INFO"

    @property
    def is_dev(self) -> bool:
        return self.env in {"dev", "development"}

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Read settings from ``environ``; the process environment (plus ``.env``) by default."""
        if environ is None:
            load_dotenv()
            environ = os.environ

        origins = environ.get("EXPENSE_WALLET_ALLOWED_ORIGINS", "")
        backend = environ.get("EXPENSE_WALLET_STORAGE", "json").strip().lower()
        if backend not in STORAGE_BACKENDS:
            raise ValidationError(f"EXPENSE_WALLET_STORAGE must be one of: {', '.join(STORAGE_BACKENDS)}")

        week_starts_on = environ.get("EXPENSE_WALLET_WEEK_STARTS_ON", "sunday").strip().lower()
        week_start_index(week_starts_on)

        raw_amount = environ.get("EXPENSE_WALLET_INITIAL_AMOUNT")
        initial_amount = (
            parse_amount(raw_amount, "EXPENSE_WALLET_INITIAL_AMOUNT", allow_zero=True)
            if raw_amount
            else DEFAULT_INITIAL_AMOUNT
        )

        return cls(
            env=environ.get("EXPENSE_WALLET_ENV", "prod").strip().lower(),
            allowed_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            jwt_secret=environ.get("JWT_SECRET") or None,
            storage_backend=backend,
            data_dir=Path(environ.get("EXPENSE_WALLET_DATA_DIR", "data")),
            mongodb_uri=environ.get("MONGODB_URI") or None,
            mongodb_database=environ.get("MONGODB_DATABASE", "expenses"),
            default_initial_amount=initial_amount,
            week_starts_on=week_starts_on,
            log_level=environ.get("EXPENSE_WALLET_LOG_LEVEL", "INFO").strip().upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
