import logging
import os
from dataclasses import dataclass
from typing import FrozenSet, Mapping

from models import RejectionReason

TRUTHY = {"1", "true", "yes", "on"}
FALSY = {"", "0", "false", "no", "off"}


class ConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""


@dataclass(frozen=True)
class EngineConfig:
    """
    Engine settings, read from PAYMENTS_* environment variables by from_env().

    halt_on: rejection reasons that abort the run instead of being logged and skipped.
    halt_on_malformed: abort on the first row that cannot be parsed.
    num_shards: 1 runs the sequential engine; more runs one worker per shard.
    """

    num_shards: int = 1
    halt_on: FrozenSet[RejectionReason] = frozenset()
    halt_on_malformed: bool = False
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> "EngineConfig":
        return cls(
            num_shards=_parse_shards(environ.get("PAYMENTS_SHARDS", "1")),
            halt_on=_parse_reasons(environ.get("PAYMENTS_HALT_ON", "")),
            halt_on_malformed=_parse_bool("PAYMENTS_HALT_ON_MALFORMED", environ.get("PAYMENTS_HALT_ON_MALFORMED", "")),
            log_level=_parse_log_level(environ.get("PAYMENTS_LOG_LEVEL", "WARNING")),
        )


def _parse_shards(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"PAYMENTS_SHARDS must be an integer, got {raw!r}") from None
    if value < 1:
        raise ConfigError(f"PAYMENTS_SHARDS must be at least 1, got {value}")
    return value


def _parse_reasons(raw: str) -> FrozenSet[RejectionReason]:
    reasons = set()
    for name in filter(None, (part.strip() for part in raw.split(","))):
        try:
            reasons.add(RejectionReason[name.upper()])
        except KeyError:
            valid = ", ".join(reason.name for reason in RejectionReason)
            raise ConfigError(f"Unknown rejection reason {name!r} in PAYMENTS_HALT_ON (expected one of {valid})") from None
    return frozenset(reasons)


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in TRUTHY:
        return True
    if value in FALSY:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def _parse_log_level(raw: str) -> str:
    level = raw.strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"PAYMENTS_LOG_LEVEL is not a logging level: {raw!r}")
    return level
