"""Settings from the environment (.env supported) and an optional YAML file."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

from kith.domain.gender import GenderedTerms

DEFAULT_MAX_ITERATIONS = 10
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _repo_root() -> Path:
    """Return repo root (parent of src)."""
    return Path(__file__).resolve().parent.parent.parent


@dataclass
class Settings:
    contacts_folder: Path = Path("contacts")
    vcard_folder: Path | None = None
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    default_region: str | None = None
    log_level: str = "INFO"
    curators: dict[str, bool] = field(default_factory=dict)
    relationship_terms: dict[str, GenderedTerms] = field(default_factory=dict)
    watch: bool = True


def _parse_int(value, name: str) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer, got {value!r}") from None
    if number < 1:
        raise ValueError(f"{name} must be at least 1, got {number}")
    return number


_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _parse_bool(value: str, name: str) -> bool:
    text = value.strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"{name} must be true or false, got {value!r}")


def load_config_file(path: Path) -> dict:
    """Load the YAML config and validate its shape."""
    raw = path.read_text(encoding="utf-8")
    config = yaml.safe_load(raw) or {}
    if not isinstance(config, dict):
        raise ValueError("Config YAML must be a mapping")

    curators = config.get("curators") or {}
    if not isinstance(curators, dict):
        raise ValueError("'curators' must map curator names to true/false")
    for name, enabled in curators.items():
        if not isinstance(enabled, bool):
            raise ValueError(f"Curator '{name}' must be true or false, got {enabled!r}")
    config["curators"] = {str(k): v for k, v in curators.items()}

    terms = config.get("relationship_terms") or {}
    if not isinstance(terms, dict):
        raise ValueError("'relationship_terms' must be a mapping")
    parsed_terms = {}
    for rel_type, entry in terms.items():
        if not isinstance(entry, dict) or not {"male", "female", "neutral"} <= set(entry):
            raise ValueError(
                f"Relationship type '{rel_type}' needs 'male', 'female' and 'neutral' terms"
            )
        parsed_terms[str(rel_type)] = GenderedTerms(
            str(entry["male"]), str(entry["female"]), str(entry["neutral"])
        )
    config["relationship_terms"] = parsed_terms

    if "watch" in config and not isinstance(config["watch"], bool):
        raise ValueError(f"'watch' must be true or false, got {config['watch']!r}")

    if "max_iterations" in config:
        config["max_iterations"] = _parse_int(config["max_iterations"], "max_iterations")
    return config


def load_settings(env_file: Path | None = None) -> Settings:
    """Build Settings. Environment variables win over the YAML file."""
    for path in (env_file,) if env_file else (_repo_root() / ".env", Path.cwd() / ".env"):
        if path.exists():
            load_dotenv(path)
            break

    config: dict = {}
    config_path = os.environ.get("KITH_CONFIG", "").strip()
    if config_path:
        config = load_config_file(Path(config_path))

    contacts = os.environ.get("KITH_CONTACTS_FOLDER", "").strip() or config.get(
        "contacts_folder", "contacts"
    )
    vcards = os.environ.get("KITH_VCARD_FOLDER", "").strip() or config.get("vcard_folder")
    max_iterations = os.environ.get("KITH_MAX_ITERATIONS", "").strip()
    region = os.environ.get("KITH_DEFAULT_REGION", "").strip() or config.get("default_region")
    log_level = (
        os.environ.get("KITH_LOG_LEVEL", "").strip() or str(config.get("log_level", "INFO"))
    ).upper()
    if log_level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level {log_level!r}")
    watch = os.environ.get("KITH_WATCH", "").strip()

    return Settings(
        contacts_folder=Path(contacts),
        vcard_folder=Path(vcards) if vcards else None,
        max_iterations=(
            _parse_int(max_iterations, "KITH_MAX_ITERATIONS")
            if max_iterations
            else config.get("max_iterations", DEFAULT_MAX_ITERATIONS)
        ),
        default_region=region.upper() if region else None,
        log_level=log_level,
        curators=config.get("curators", {}),
        relationship_terms=config.get("relationship_terms", {}),
        watch=_parse_bool(watch, "KITH_WATCH") if watch else config.get("watch", True),
    )
