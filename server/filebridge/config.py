import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator

from filebridge.services.path_guard import canonical_path

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"
BYTES_PER_MB = 1024 * 1024

# Environment variable -> settings field
ENV_OVERRIDES: Dict[str, str] = {
    "PORT": "port",
    "ALLOWED_ROOTS": "allowed_roots",
    "MAX_FILE_SIZE_MB": "max_file_size_mb",
}


class ConfigError(Exception):
    pass


class Settings(BaseModel):
    # base_dir is declared first so the roots validator can see it.
    base_dir: Path = Field(default_factory=Path.cwd, alias="baseDir")
    port: int = Field(default=3000, ge=0, le=65535)
    allowed_roots: Tuple[str, ...] = Field(default=(), alias="allowedRoots")
    max_file_size_mb: int = Field(default=50, ge=0, alias="maxFileSizeMB")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    @field_validator("base_dir")
    @classmethod
    def _absolute_base_dir(cls, value: Path) -> Path:
        return value.absolute()

    @field_validator("allowed_roots", mode="before")
    @classmethod
    def _split_roots(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        return value

    @field_validator("allowed_roots")
    @classmethod
    def _normalize_roots(cls, value: Tuple[str, ...], info: ValidationInfo) -> Tuple[str, ...]:
        base_dir = info.data.get("base_dir") or Path.cwd()
        roots = []
        for root in value:
            if not os.path.isabs(root):
                root = os.path.join(base_dir, root)
            roots.append(canonical_path(os.path.abspath(root)))
        return tuple(roots)

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * BYTES_PER_MB


def _read_config_file(config_path: Path) -> Dict[str, Any]:
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(
            "Could not read %s: %s. Using environment variables or default values.",
            config_path,
            e,
        )
        return {}

    if not isinstance(data, dict):
        logger.warning(
            "Ignoring %s: expected a JSON object, got %s.", config_path, type(data).__name__
        )
        return {}

    logger.info("Loaded configuration from %s", config_path)
    return data


def _override(values: Dict[str, Any], field_name: str, value: Any) -> None:
    alias = Settings.model_fields[field_name].alias
    if alias:
        values.pop(alias, None)
    values[field_name] = value


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> Settings:
    """
    Build the process-wide settings.

    Precedence, lowest first: built-in defaults, the JSON config file,
    environment variables, then explicit keyword overrides. Relative roots
    and relative request paths resolve against the config file's directory.
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILE_NAME
    config_path = Path(config_path).absolute()
    if environ is None:
        environ = os.environ

    values: Dict[str, Any] = _read_config_file(config_path)
    if "baseDir" not in values and "base_dir" not in values:
        values["base_dir"] = config_path.parent

    for env_name, field_name in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw:
            _override(values, field_name, raw)

    for field_name, value in overrides.items():
        if value is not None:
            _override(values, field_name, value)

    try:
        return Settings.model_validate(values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
