"""Load DifftailConfig from difftail.yaml if present.

Merges file config with CLI kwargs. CLI overrides file.
"""

from __future__ import annotations

from pathlib import Path

from difftail.config import DifftailConfig

_KNOWN_KEYS = (
    "file", "directory", "host", "port", "ws_path", "queue_size",
    "max_file_size", "debounce_ms", "step_ms", "restrict_reads",
)


def load_config(root: Path, **overrides: object) -> DifftailConfig:
    """Load DifftailConfig, optionally merging difftail.yaml from root.

    Looks for difftail.yaml, difftail.yml, or difftail.toml in root. If
    found, loads and merges with overrides. Overrides that are ``None`` are
    ignored so unset CLI flags don't mask file values.
    """
    file_config = _read_difftail_config(root)
    given = {k: v for k, v in overrides.items() if v is not None}
    if "file" in given or "directory" in given:
        # A target on the command line replaces the file's target entirely
        file_config.pop("file", None)
        file_config.pop("directory", None)
    merged = {**file_config, **given}
    # Normalize target paths; relative ones are relative to root
    for key in ("file", "directory"):
        value = merged.get(key)
        if value is not None and not isinstance(value, Path):
            merged[key] = Path(str(value))
        if isinstance(merged.get(key), Path) and not merged[key].is_absolute():
            merged[key] = root / merged[key]
    return DifftailConfig(**merged)


def _read_difftail_config(root: Path) -> dict[str, object]:
    """Read difftail config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("difftail.yaml", "difftail.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "difftail.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    """Parse YAML config. Returns empty dict on error."""
    import yaml

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError):
        return {}
    if not isinstance(data, dict):
        return {}
    return _flatten_difftail_section(data)


def _parse_toml(path: Path) -> dict[str, object]:
    """Parse TOML config. Returns empty dict on error."""
    import tomllib

    try:
        data = tomllib.loads(path.read_text())
    except (OSError, tomllib.TOMLDecodeError):
        return {}
    return _flatten_difftail_section(data)


def _flatten_difftail_section(data: dict[str, object]) -> dict[str, object]:
    """Extract difftail.* keys into top-level config."""
    result: dict[str, object] = {}
    section = data.get("difftail")
    if isinstance(section, dict):
        for k, v in section.items():
            if k in _KNOWN_KEYS:
                result[k] = v
    for k, v in data.items():
        if k != "difftail" and k in _KNOWN_KEYS:
            result[k] = v
    return result
