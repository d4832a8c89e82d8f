"""Project-scoped board configuration in .devloop/config.yaml."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ruamel.yaml import YAML

CONFIG_DIR = ".devloop"
CONFIG_FILENAME = "config.yaml"
DEFAULT_BOARD_DIR = "agile"
DEFAULT_ARCHIVE_DIR = "archive"


class ConfigError(RuntimeError):
    """Raised when board configuration is invalid."""


@dataclass(slots=True)
class AgileConfig:
    """Board settings stored under the ``agile`` key of the config file."""

    root: str = DEFAULT_BOARD_DIR
    archive: str = DEFAULT_ARCHIVE_DIR
    templates_dir: str | None = None
    review_instructions_file: str | None = None
    guidance_staleness: bool = True

    def to_dict(self) -> dict[str, object]:
        return {
            "root": self.root,
            "archive": self.archive,
            "templates_dir": self.templates_dir,
            "review": {"instructions_file": self.review_instructions_file},
            "guards": {"guidance_staleness": self.guidance_staleness},
        }

    @classmethod
    def from_dict(cls, data: dict[str, object] | None) -> "AgileConfig":
        if not isinstance(data, dict):
            return cls()

        def _text(value: object, default: str | None) -> str | None:
            if isinstance(value, str) and value.strip():
                return value.strip()
            return default

        review = data.get("review")
        guards = data.get("guards")
        instructions = review.get("instructions_file") if isinstance(review, dict) else None

        staleness = True
        if isinstance(guards, dict) and "guidance_staleness" in guards:
            raw = guards["guidance_staleness"]
            if not isinstance(raw, bool):
                raise ConfigError(
                    f"agile.guards.guidance_staleness must be true or false, got {raw!r}"
                )
            staleness = raw

        return cls(
            root=_text(data.get("root"), DEFAULT_BOARD_DIR) or DEFAULT_BOARD_DIR,
            archive=_text(data.get("archive"), DEFAULT_ARCHIVE_DIR) or DEFAULT_ARCHIVE_DIR,
            templates_dir=_text(data.get("templates_dir"), None),
            review_instructions_file=_text(instructions, None),
            guidance_staleness=staleness,
        )


def config_path(repo_root: Path) -> Path:
    return repo_root / CONFIG_DIR / CONFIG_FILENAME


def load_config(repo_root: Path) -> AgileConfig:
    """Load board config; a missing file or section yields defaults."""
    path = config_path(repo_root)
    if not path.exists():
        return AgileConfig()

    yaml = YAML()
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.load(handle) or {}
    except Exception as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc

    section = payload.get("agile") if isinstance(payload, dict) else None
    return AgileConfig.from_dict(section if isinstance(section, dict) else None)


def save_config(repo_root: Path, config: AgileConfig) -> None:
    """Persist board config, preserving other top-level sections."""
    path = config_path(repo_root)
    path.parent.mkdir(parents=True, exist_ok=True)

    yaml = YAML()
    yaml.preserve_quotes = True

    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.load(handle) or {}
    else:
        payload = {}

    if not isinstance(payload, dict):
        payload = {}

    payload["agile"] = config.to_dict()

    with path.open("w", encoding="utf-8") as handle:
        yaml.dump(payload, handle)
