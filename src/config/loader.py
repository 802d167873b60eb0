"""Slot table loader with validation."""

import hashlib
import time
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from src.config.constants import COMPONENT_CONFIG, FILE_TYPE_SLOTS
from src.config.schemas.slots import SlotTableConfig


logger = structlog.get_logger()


class ConfigValidationError(Exception):
    """A slot table could not be loaded.

    Attributes:
        errors: One ``{"loc", "msg", "type"}`` dict per problem found.
        file_path: The table that was rejected.
    """

    def __init__(self, errors: list[dict[str, str]], file_path: str) -> None:
        self.errors = errors
        self.file_path = file_path
        noun = "problem" if len(errors) == 1 else "problems"
        super().__init__(f"{file_path}: {len(errors)} {noun} in slot table")


class SlotTableLoader:
    """Loads and validates slot table files.

    A table is rejected when it fails schema validation or, unless it sets
    ``allow_collisions``, when two card types claim the same story index
    within its horizon.
    """

    def __init__(self, run_id: str = "") -> None:
        """Initialize the loader.

        Args:
            run_id: Identifier for log correlation.
        """
        self._run_id = run_id
        self._file_checksum: str | None = None
        self._validation_errors: list[dict[str, str]] = []
        self._validation_duration_ms: float = 0

    @property
    def file_checksum(self) -> str | None:
        """SHA-256 of the last table that parsed, or None."""
        return self._file_checksum

    @property
    def validation_errors(self) -> list[dict[str, str]]:
        """Errors from the last load, as a fresh list."""
        return list(self._validation_errors)

    @property
    def validation_duration_ms(self) -> float:
        """Wall time of the last successful load."""
        return self._validation_duration_ms

    @staticmethod
    def _read_table(path: Path) -> tuple[object, str]:
        """Parse the YAML at ``path`` and hash its raw bytes."""
        raw = path.read_bytes()
        return yaml.safe_load(raw.decode("utf-8")) or {}, hashlib.sha256(raw).hexdigest()

    def load(self, path: Path) -> SlotTableConfig:
        """Load and validate a slot table.

        Args:
            path: Path to the YAML file.

        Returns:
            Validated slot table.

        Raises:
            ConfigValidationError: If the file is missing, malformed,
                invalid or has collisions it does not allow.
        """
        start_time = time.perf_counter()
        self._validation_errors = []
        log = logger.bind(run_id=self._run_id, component=COMPONENT_CONFIG)
        log.info("loading_config_file", file_path=str(path), file_type=FILE_TYPE_SLOTS)

        try:
            data, checksum = self._read_table(path)
            config = SlotTableConfig.model_validate(data)
        except FileNotFoundError as e:
            self._record("file", str(e), "file_not_found")
            log.error("config_file_not_found", error=str(e))
            raise ConfigValidationError(self.validation_errors, str(path)) from e
        except yaml.YAMLError as e:
            self._record("yaml", str(e), "yaml_parse_error")
            log.error("config_yaml_parse_error", error=str(e))
            raise ConfigValidationError(self.validation_errors, str(path)) from e
        except ValidationError as e:
            for err in e.errors():
                self._record(
                    ".".join(str(loc) for loc in err["loc"]) or "root",
                    err["msg"],
                    err["type"],
                )
            log.error(
                "config_validation_failed",
                validation_error_count=len(self._validation_errors),
                errors=self._validation_errors,
            )
            raise ConfigValidationError(self.validation_errors, str(path)) from e

        self._file_checksum = checksum
        collisions = config.to_registry().log_collision_report(config.horizon)
        if collisions and not config.allow_collisions:
            for collision in collisions:
                types = ", ".join(c.value for c in collision.card_types)
                self._record(
                    f"position.{collision.position}",
                    f"Card types collide: {types}",
                    "slot_collision",
                )
            log.error("config_validation_failed", validation_error_count=len(collisions))
            raise ConfigValidationError(self.validation_errors, str(path))

        self._validation_duration_ms = (time.perf_counter() - start_time) * 1000
        log.info(
            "config_file_loaded",
            file_path=str(path),
            file_sha256=checksum,
            rule_count=len(config.rules),
            config_validation_duration_ms=self._validation_duration_ms,
        )
        return config

    def _record(self, loc: str, msg: str, error_type: str) -> None:
        self._validation_errors.append({"loc": loc, "msg": msg, "type": error_type})


def load_slot_table(path: Path, run_id: str = "") -> SlotTableConfig:
    """Load and validate a slot table file.

    Args:
        path: Path to the YAML file.
        run_id: Identifier for log correlation.

    Returns:
        Validated slot table.
    """
    return SlotTableLoader(run_id=run_id).load(path)
