"""Config snapshot persistence with atomic writes and error recovery.

The config file holds the API key, refresh settings and one entry per tracked
token. Writes go to a temp file in the same directory and are moved into
place with ``os.replace``, after copying the previous file to ``.bak``. A
failed write therefore leaves the previous snapshot intact.
"""

import json
import math
import os
import shutil
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Annotated, Any, Iterable, List, Optional

from pydantic import BaseModel, BeforeValidator, Field, field_serializer, field_validator
from pydantic import ValidationError as PydanticValidationError

from core.errors import PersistenceError, ValidationError
from core.helpers.validation import finite_decimal
from core.logging_utils import get_logger
from core.models import Holding, TrackedToken, normalize_identifier

logger = get_logger(__name__)

ZERO = Decimal(0)

OptionalDecimal = Annotated[Optional[Decimal], BeforeValidator(finite_decimal)]


class TokenEntry(BaseModel):
    """One token as stored in config.json."""
    name: str
    owned: OptionalDecimal = None
    avg_buy_price: OptionalDecimal = None
    in_watchlist: bool = True
    in_portfolio: bool = True

    @field_serializer("owned", "avg_buy_price")
    def _as_number(self, value: Optional[Decimal]) -> Optional[float | str]:
        """JSON number when a float holds the value exactly, otherwise a string."""
        if value is None:
            return None
        as_float = float(value)
        if math.isfinite(as_float) and Decimal(repr(as_float)) == value:
            return as_float
        return str(value)

    @property
    def is_in_portfolio(self) -> bool:
        return self.in_portfolio or (self.owned is not None and self.owned > 0)


class TrackerConfig(BaseModel):
    """Full persisted snapshot: settings plus tokens."""
    api_key: str = ""
    tokens: List[TokenEntry] = Field(default_factory=list)
    refresh_interval: int = 60
    fear_and_greed_limit: str = "30"

    @field_validator("fear_and_greed_limit", mode="before")
    @classmethod
    def _limit_as_str(cls, value: Any) -> str:
        return str(value)


def tokens_from_config(config: TrackerConfig) -> List[TrackedToken]:
    """Build store tokens from config entries.

    Entries without any membership and duplicate names are skipped with a
    warning; negative holdings are rejected with a warning too.
    """
    tokens: List[TrackedToken] = []
    seen = set()
    for entry in config.tokens:
        identifier = normalize_identifier(entry.name)
        if not identifier:
            logger.warning("[CONFIG] Skipping token with empty name")
            continue
        if identifier in seen:
            logger.warning("[CONFIG] Duplicate token %s, keeping the first entry", identifier)
            continue

        holding = None
        if entry.is_in_portfolio:
            try:
                holding = Holding(
                    amount=entry.owned if entry.owned is not None else ZERO,
                    avg_buy_price=entry.avg_buy_price if entry.avg_buy_price is not None else ZERO,
                )
            except ValidationError as e:
                logger.warning("[CONFIG] Dropping holding for %s: %s", identifier, e)

        token = TrackedToken(identifier=identifier, in_watchlist=entry.in_watchlist, holding=holding)
        if token.is_orphaned:
            logger.warning("[CONFIG] Skipping %s: not in watchlist or portfolio", identifier)
            continue
        seen.add(identifier)
        tokens.append(token)
    return tokens


def config_with_tokens(config: TrackerConfig, tokens: Iterable[TrackedToken]) -> TrackerConfig:
    """Return a copy of config whose token list mirrors the store."""
    entries = []
    for token in tokens:
        holding = token.holding
        entries.append(TokenEntry(
            name=token.identifier,
            owned=holding.amount if holding else None,
            avg_buy_price=holding.avg_buy_price if holding else None,
            in_watchlist=token.in_watchlist,
            in_portfolio=token.in_portfolio,
        ))
    return config.model_copy(update={"tokens": entries})


class ConfigPersistence:
    """
    Config file persistence with:
    - Atomic writes (write to temp, then rename)
    - Automatic backup before write
    - Corruption recovery from backup
    - Typed errors instead of silent failures
    """

    def __init__(self, path: Path | str):
        self.config_file = Path(path)
        self.backup_file = self.config_file.with_name(self.config_file.name + ".bak")

    def _ensure_dir(self) -> None:
        self.config_file.parent.mkdir(parents=True, exist_ok=True)

    def _create_backup(self) -> None:
        """Copy the current file aside before it is replaced."""
        if self.config_file.exists():
            try:
                shutil.copy2(self.config_file, self.backup_file)
            except OSError as e:
                logger.warning("[CONFIG] Failed to create backup: %s", e)

    def _atomic_write(self, data: dict, backup: bool = True) -> None:
        """Write data atomically. Raises PersistenceError on failure."""
        temp_path = None
        try:
            self._ensure_dir()
            if backup:
                self._create_backup()
            # Same directory keeps the rename on one filesystem
            temp_fd, temp_path = tempfile.mkstemp(
                dir=self.config_file.parent,
                prefix=".config_",
                suffix=".tmp",
            )
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.config_file)
            temp_path = None
        except OSError as e:
            logger.error("[CONFIG] Atomic write failed: %s", e)
            raise PersistenceError(f"Could not write {self.config_file}: {e}") from e
        finally:
            if temp_path is not None:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass

    def _read_json(self, path: Path) -> Optional[TrackerConfig]:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read().strip()
        if not content:
            logger.warning("[CONFIG] %s is empty", path)
            return None
        return TrackerConfig.model_validate(json.loads(content))

    def load(self) -> TrackerConfig:
        """
        Load the config, falling back to the backup when the main file is
        corrupt. A missing file yields an empty default config.

        Raises:
            PersistenceError: both the main file and the backup are unreadable.
        """
        main_error: Optional[Exception] = None
        if self.config_file.exists():
            try:
                config = self._read_json(self.config_file)
                if config is not None:
                    logger.debug("[CONFIG] Loaded %d tokens", len(config.tokens))
                    return config
            except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
                logger.error("[CONFIG] Main file unreadable: %s", e)
                main_error = e

        if self.backup_file.exists():
            logger.info("[CONFIG] Attempting recovery from backup")
            try:
                config = self._read_json(self.backup_file)
                if config is not None:
                    logger.info("[CONFIG] Recovered %d tokens from backup", len(config.tokens))
                    # Keep the good backup; the main file is the corrupt one
                    self._atomic_write(config.model_dump(mode="json"), backup=False)
                    return config
            except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
                logger.error("[CONFIG] Backup recovery failed: %s", e)
                raise PersistenceError(f"Config and backup are unreadable: {e}") from e

        if main_error is not None:
            raise PersistenceError(f"Could not read {self.config_file}: {main_error}") from main_error

        logger.info("[CONFIG] No config at %s, starting empty", self.config_file)
        return TrackerConfig()

    def save(self, config: TrackerConfig) -> None:
        """Persist the config atomically. Raises PersistenceError on failure."""
        self._atomic_write(config.model_dump(mode="json"))
        logger.debug("[CONFIG] Saved %d tokens", len(config.tokens))
