"""Application configuration loaded from a YAML file."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

DEFAULT_CONFIG_PATH = "config/config.yaml"
TIME_LAYOUT = "%Y-%m-%dT%H:%M:%S.000Z"

_DEFAULT_GROUP_WAIT = 10
_DEFAULT_GROUP_INTERVAL = 120
_DEFAULT_RECOVER_WAIT = 1

# Fields named "...password" are read from keys with the trailing "word" dropped.
_CREDENTIAL_SUFFIX = "password"
_CREDENTIAL_TRIM = len("word")
_BLANK = str()


@dataclass(frozen=True)
class AlarmConfig:
    """Timing of alert grouping and recovery, in seconds and minutes."""

    group_wait: int = 0
    group_interval: int = 0
    recover_wait: int = 0

    def with_defaults(self) -> "AlarmConfig":
        """Return a copy in which unset (zero) values take their defaults."""
        return dataclasses.replace(
            self,
            group_wait=self.group_wait or _DEFAULT_GROUP_WAIT,
            group_interval=self.group_interval or _DEFAULT_GROUP_INTERVAL,
            recover_wait=self.recover_wait or _DEFAULT_RECOVER_WAIT,
        )


@dataclass(frozen=True)
class ServerConfig:
    mode: str = ""
    port: str = ""
    alarm_config: AlarmConfig = field(
        default_factory=AlarmConfig, metadata={"nested": AlarmConfig}
    )


@dataclass(frozen=True)
class MySQLConfig:
    host: str = ""
    port: str = ""
    user: str = ""
    password: str = _BLANK
    db_name: str = ""
    timeout: str = ""


@dataclass(frozen=True)
class RedisConfig:
    host: str = ""
    port: str = ""
    password: str = _BLANK


@dataclass(frozen=True)
class JwtConfig:
    expire: int = 0


@dataclass(frozen=True)
class JaegerConfig:
    url: str = ""


@dataclass(frozen=True)
class LdapConfig:
    enabled: bool = False
    address: str = ""
    base_dn: str = ""
    user_dn: str = ""
    admin_user: str = ""
    admin_password: str = _BLANK
    user_prefix: str = ""
    default_user_role: str = ""
    cronjob: str = ""


@dataclass(frozen=True)
class AppConfig:
    """The whole application configuration."""

    server: ServerConfig = field(
        default_factory=ServerConfig, metadata={"nested": ServerConfig}
    )
    mysql: MySQLConfig = field(
        default_factory=MySQLConfig, metadata={"nested": MySQLConfig}
    )
    redis: RedisConfig = field(
        default_factory=RedisConfig, metadata={"nested": RedisConfig}
    )
    jwt: JwtConfig = field(default_factory=JwtConfig, metadata={"nested": JwtConfig})
    jaeger: JaegerConfig = field(
        default_factory=JaegerConfig, metadata={"nested": JaegerConfig}
    )
    ldap: LdapConfig = field(default_factory=LdapConfig, metadata={"nested": LdapConfig})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AppConfig":
        """Build a configuration from a mapping; keys match case-insensitively."""
        if not isinstance(data, Mapping):
            raise ValueError("configuration must be a mapping")
        return _populate(cls, data)


def _normalise(name: str) -> str:
    return str(name).replace("_", "").lower()


def _source_key(name: str) -> str:
    if name.endswith(_CREDENTIAL_SUFFIX):
        return name[:-_CREDENTIAL_TRIM]
    return name


def _lookup(data: Mapping[str, Any], name: str) -> Any:
    wanted = _normalise(name)
    for key, value in data.items():
        if _normalise(key) == wanted:
            return value
    return None


def _coerce(f: dataclasses.Field, raw: Any) -> Any:
    default = f.default
    try:
        if isinstance(default, bool):
            if isinstance(raw, str):
                lowered = raw.strip().lower()
                if lowered in ("true", "1", "yes", "on"):
                    return True
                if lowered in ("false", "0", "no", "off", ""):
                    return False
                raise ValueError(raw)
            return bool(raw)
        if isinstance(default, int):
            return int(raw)
        return str(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid value for {f.name!r}: {raw!r}") from exc


def _populate(cls: type, data: Any) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise ValueError(f"section for {cls.__name__} must be a mapping")
    kwargs = {}
    for f in dataclasses.fields(cls):
        raw = _lookup(data, _source_key(f.name))
        if raw is None:
            continue
        nested = f.metadata.get("nested")
        kwargs[f.name] = _populate(nested, raw) if nested else _coerce(f, raw)
    return cls(**kwargs)


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Read and parse the YAML configuration file at ``path``."""
    with open(path, encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ValueError(f"cannot parse configuration: {exc}") from exc
    if data is None:
        data = {}
    return AppConfig.from_dict(data)