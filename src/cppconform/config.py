from __future__ import annotations

import fnmatch
import re
import tomllib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, cast

from cppconform.engine.types import Severity


class ConfigError(ValueError):
    """Raised when a cppconform configuration file is invalid."""


RuleId = str

CONFIG_FILENAME = ".cppconform.toml"
PYPROJECT_FILENAME = "pyproject.toml"

DEFAULT_FAIL_ON_ERROR = True
DEFAULT_PARAMETER_COUNT_THRESHOLD = 4
DEFAULT_FORMAT = "text"
OUTPUT_FORMATS: tuple[str, ...] = ("text", "json")
DEFAULT_INCLUDE: tuple[str, ...] = (
    "*.cpp",
    "*.cc",
    "*.cxx",
    "*.c++",
    "*.h",
    "*.hh",
    "*.hpp",
    "*.hxx",
    "*.h++",
    "*.ipp",
    "*.inl",
)
DEFAULT_FORMATTER_COMMAND: tuple[str, ...] = ("clang-format",)

_RULE_ID_RE = re.compile(r"^[a-z][a-z0-9]*(?:-[a-z0-9]+)*$")

_TOP_LEVEL_KEYS = frozenset(
    {
        "fail_on_error",
        "parameter_count_threshold",
        "fix",
        "format",
        "include",
        "exclude",
        "timeout",
        "naming",
        "formatter",
        "rules",
    }
)
_NAMING_KEYS = frozenset({"allow", "check_low_confidence"})
_FORMATTER_KEYS = frozenset({"enabled", "command", "required"})
_RULE_KEYS = frozenset({"enabled", "severity"})


@dataclass(frozen=True, slots=True)
class RuleSettings:
    enabled: bool | None = None
    severity: Severity | None = None


@dataclass(frozen=True, slots=True)
class NamingConfig:
    allow: tuple[str, ...] = ()
    check_low_confidence: bool = False


@dataclass(frozen=True, slots=True)
class FormatterConfig:
    enabled: bool = False
    command: tuple[str, ...] = DEFAULT_FORMATTER_COMMAND
    required: bool = False


@dataclass(frozen=True, slots=True)
class ConformConfig:
    fail_on_error: bool = DEFAULT_FAIL_ON_ERROR
    parameter_count_threshold: int = DEFAULT_PARAMETER_COUNT_THRESHOLD
    fix: bool = False
    format: str = DEFAULT_FORMAT
    include: tuple[str, ...] = DEFAULT_INCLUDE
    exclude: tuple[str, ...] = ()
    timeout: float | None = None
    naming: NamingConfig = field(default_factory=NamingConfig)
    formatter: FormatterConfig = field(default_factory=FormatterConfig)
    rules: Mapping[RuleId, RuleSettings] = field(default_factory=lambda: MappingProxyType({}))
    source: Path | None = None

    def rule_settings(self, rule_id: str) -> RuleSettings:
        return self.rules.get(rule_id, RuleSettings())


def find_config_file(start: Path) -> tuple[Path, str] | None:
    """
    Search `start` and its parents for configuration.

    Returns `(path, table)` where `table` is "" for a `.cppconform.toml` and
    "tool.cppconform" for a `pyproject.toml` carrying that table. A directory's
    own `.cppconform.toml` wins over its `pyproject.toml`.
    """

    start = start.resolve()
    base = start if start.is_dir() else start.parent
    for candidate in [base, *base.parents]:
        dedicated = candidate / CONFIG_FILENAME
        if dedicated.is_file():
            return dedicated, ""
        pyproject = candidate / PYPROJECT_FILENAME
        if pyproject.is_file() and _pyproject_has_table(pyproject):
            return pyproject, "tool.cppconform"
    return None


def load_config(start: Path | str = ".", *, config_file: Path | str | None = None) -> ConformConfig:
    """
    Load configuration for a check rooted at `start`.

    An explicit `config_file` is read as a dedicated file unless it is named
    `pyproject.toml`. Without one, the nearest `.cppconform.toml` or
    `[tool.cppconform]` table is used; if neither exists the defaults apply.
    """

    if config_file is not None:
        path = Path(config_file)
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        table_name = "tool.cppconform" if path.name == PYPROJECT_FILENAME else ""
    else:
        found = find_config_file(Path(start))
        if found is None:
            return ConformConfig()
        path, table_name = found

    data = _read_toml(path)
    if table_name:
        tool_table = data.get("tool", {})
        table = tool_table.get("cppconform", {}) if isinstance(tool_table, dict) else {}
        if not isinstance(table, dict):
            raise ConfigError(f"`{table_name}` in {path} must be a table.")
    else:
        table = data
    return parse_config_table(table, prefix=table_name, source=path.resolve())


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Could not read {path}: {exc}") from exc


def _pyproject_has_table(path: Path) -> bool:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, OSError):
        return False
    tool_table = data.get("tool", {})
    return isinstance(tool_table, dict) and "cppconform" in tool_table


def _field(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def _reject_unknown_keys(table: Mapping[str, Any], allowed: Iterable[str], *, prefix: str) -> None:
    allowed_set = set(allowed)
    unknown = sorted(str(k) for k in table if k not in allowed_set)
    if unknown:
        where = f"`{prefix}`" if prefix else "the configuration"
        raise ConfigError(f"Unknown key(s) in {where}: {', '.join(unknown)}.")


def _validate_bool(value: Any, *, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"`{field_name}` must be a boolean.")
    return value


def _validate_str_list(value: Any, *, field_name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or any(not isinstance(v, str) for v in value):
        raise ConfigError(f"`{field_name}` must be a list of strings.")
    return tuple(v.strip() for v in value if v.strip())


def _validate_severity(value: Any, *, field_name: str) -> Severity:
    if not isinstance(value, str):
        raise ConfigError(f"`{field_name}` must be a string.")
    normalized = value.strip().lower()
    if normalized == "warn":
        normalized = "warning"
    if normalized not in {"info", "warning", "error"}:
        raise ConfigError(f"`{field_name}` must be one of: info, warning, error.")
    return cast(Severity, normalized)


def parse_config_table(table: Mapping[str, Any], *, prefix: str = "", source: Path | None = None) -> ConformConfig:
    _reject_unknown_keys(table, _TOP_LEVEL_KEYS, prefix=prefix)

    fail_on_error = _validate_bool(
        table.get("fail_on_error", DEFAULT_FAIL_ON_ERROR), field_name=_field(prefix, "fail_on_error")
    )

    threshold = table.get("parameter_count_threshold", DEFAULT_PARAMETER_COUNT_THRESHOLD)
    if not isinstance(threshold, int) or isinstance(threshold, bool):
        raise ConfigError(f"`{_field(prefix, 'parameter_count_threshold')}` must be an integer.")
    if threshold < 0:
        raise ConfigError(f"`{_field(prefix, 'parameter_count_threshold')}` must be >= 0.")

    fix = _validate_bool(table.get("fix", False), field_name=_field(prefix, "fix"))

    output_format = table.get("format", DEFAULT_FORMAT)
    if not isinstance(output_format, str) or output_format.strip().lower() not in OUTPUT_FORMATS:
        raise ConfigError(f"`{_field(prefix, 'format')}` must be one of: {', '.join(OUTPUT_FORMATS)}.")

    include = _validate_str_list(table.get("include", list(DEFAULT_INCLUDE)), field_name=_field(prefix, "include"))
    exclude = _validate_str_list(table.get("exclude", []), field_name=_field(prefix, "exclude"))
    timeout = _parse_timeout(table.get("timeout"), field_name=_field(prefix, "timeout"))

    return ConformConfig(
        fail_on_error=fail_on_error,
        parameter_count_threshold=threshold,
        fix=fix,
        format=output_format.strip().lower(),
        include=include,
        exclude=exclude,
        timeout=timeout,
        naming=_parse_naming_config(table.get("naming", {}), prefix=_field(prefix, "naming")),
        formatter=_parse_formatter_config(table.get("formatter", {}), prefix=_field(prefix, "formatter")),
        rules=_parse_rules_config(table.get("rules", {}), prefix=_field(prefix, "rules")),
        source=source,
    )


def _parse_timeout(value: Any, *, field_name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ConfigError(f"`{field_name}` must be a number of seconds.")
    if value <= 0:
        raise ConfigError(f"`{field_name}` must be > 0.")
    return float(value)


def _parse_naming_config(value: Any, *, prefix: str) -> NamingConfig:
    if not isinstance(value, dict):
        raise ConfigError(f"`{prefix}` must be a table.")
    _reject_unknown_keys(value, _NAMING_KEYS, prefix=prefix)
    allow = _validate_str_list(value.get("allow", []), field_name=f"{prefix}.allow")
    check_low_confidence = _validate_bool(
        value.get("check_low_confidence", False), field_name=f"{prefix}.check_low_confidence"
    )
    return NamingConfig(allow=allow, check_low_confidence=check_low_confidence)


def _parse_formatter_config(value: Any, *, prefix: str) -> FormatterConfig:
    if not isinstance(value, dict):
        raise ConfigError(f"`{prefix}` must be a table.")
    _reject_unknown_keys(value, _FORMATTER_KEYS, prefix=prefix)

    enabled = _validate_bool(value.get("enabled", False), field_name=f"{prefix}.enabled")
    required = _validate_bool(value.get("required", False), field_name=f"{prefix}.required")

    command_raw = value.get("command", list(DEFAULT_FORMATTER_COMMAND))
    if isinstance(command_raw, str):
        command = tuple(command_raw.split())
    else:
        command = _validate_str_list(command_raw, field_name=f"{prefix}.command")
    if not command:
        raise ConfigError(f"`{prefix}.command` must not be empty.")

    return FormatterConfig(enabled=enabled, command=command, required=required)


def _parse_rules_config(value: Any, *, prefix: str) -> Mapping[RuleId, RuleSettings]:
    if not isinstance(value, dict):
        raise ConfigError(f"`{prefix}` must be a table.")

    rules: dict[RuleId, RuleSettings] = {}
    for raw_rule_id, sub in value.items():
        rule_id = str(raw_rule_id).strip().lower()
        field_name = f"{prefix}.{raw_rule_id}"
        if not _RULE_ID_RE.match(rule_id):
            raise ConfigError(f"`{field_name}` is invalid; expected a kebab-case rule id like naming-casing.")
        if not isinstance(sub, dict):
            raise ConfigError(f"`{field_name}` must be a table.")
        _reject_unknown_keys(sub, _RULE_KEYS, prefix=field_name)

        enabled = sub.get("enabled")
        if enabled is not None:
            enabled = _validate_bool(enabled, field_name=f"{field_name}.enabled")
        severity = sub.get("severity")
        rules[rule_id] = RuleSettings(
            enabled=enabled,
            severity=_validate_severity(severity, field_name=f"{field_name}.severity") if severity is not None else None,
        )
    return MappingProxyType(rules)


def compute_enabled_rule_ids(
    config: ConformConfig,
    *,
    available: Mapping[RuleId, bool],
) -> set[RuleId]:
    """
    Resolve enabled rules from each rule's default plus `[rules.<id>] enabled`.

    `available` maps every known rule id to its default enablement.
    """

    enabled: set[RuleId] = set()
    for rule_id, default_enabled in available.items():
        setting = config.rule_settings(rule_id).enabled
        if default_enabled if setting is None else setting:
            enabled.add(rule_id)
    return enabled


def unknown_rule_ids(config: ConformConfig, *, known: Iterable[RuleId]) -> list[RuleId]:
    known_set = set(known)
    return sorted(rule_id for rule_id in config.rules if rule_id not in known_set)


def path_matches(relative_posix: str, patterns: Iterable[str]) -> bool:
    """
    Return True if a POSIX-style relative path matches any pattern.

    Supported patterns:
    - Directory prefixes: "third_party/" matches everything below it.
    - Globs without slashes: "*.pb.h" matches basenames.
    - Globs with slashes: "src/**/generated/*.cc" matches full relative paths.
    """

    basename = relative_posix.rsplit("/", 1)[-1]
    for raw_pattern in patterns:
        pattern = raw_pattern.strip().replace("\\", "/")
        if not pattern:
            continue
        if pattern.startswith("./"):
            pattern = pattern[2:]

        if pattern.endswith("/"):
            if relative_posix.startswith(pattern) or f"/{pattern}" in f"/{relative_posix}":
                return True
            continue

        if "/" in pattern:
            if fnmatch.fnmatch(relative_posix, pattern):
                return True
        elif fnmatch.fnmatch(basename, pattern) or fnmatch.fnmatch(relative_posix, pattern):
            return True

    return False


def path_is_selected(path: Path, *, project_root: Path, config: ConformConfig) -> bool:
    """Apply `include`/`exclude` globs to `path` relative to `project_root`."""

    try:
        relative = path.resolve().relative_to(project_root.resolve()).as_posix()
    except (ValueError, OSError, RuntimeError):
        relative = path.name
    if not path_matches(relative, config.include):
        return False
    return not path_matches(relative, config.exclude)
