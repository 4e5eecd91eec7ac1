"""
auth/policy.py -- Argon2 cost parameters as a validated, immutable value.

HashPolicy is a frozen Pydantic model: the bounds below are checked once at
construction and the instance cannot be mutated afterwards. Use
HashPolicy.create() (or from_settings()) rather than the bare constructor so a
bad value surfaces as ConfigInvalid instead of a pydantic ValidationError.

Profiles replace build-time dev/prod variants: the profile is chosen at
runtime by name (ARGON_PROFILE) and individual ARGON_* settings override it.

Layer rule: no imports from api/. core.config is only referenced for typing.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretBytes, ValidationError

from auth.errors import ConfigInvalid

if TYPE_CHECKING:
    from core.config import Settings


class Argon2Variant(str, Enum):
    ARGON2ID = "argon2id"
    ARGON2I = "argon2i"
    ARGON2D = "argon2d"


class HashPolicy(BaseModel):
    """Argon2 cost parameters.

    memory_cost_kb: 1 MiB .. 1 GiB
    iterations:     1 .. 10
    parallelism:    1 .. 8 lanes
    output_length:  16 .. 64 bytes of digest
    secret_key:     optional pepper; see auth.passwords for how it is applied
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    memory_cost_kb: int = Field(default=19456, ge=1024, le=1_048_576)
    iterations: int = Field(default=2, ge=1, le=10)
    parallelism: int = Field(default=1, ge=1, le=8)
    output_length: int = Field(default=32, ge=16, le=64)
    variant: Argon2Variant = Argon2Variant.ARGON2ID
    secret_key: Optional[SecretBytes] = None

    @classmethod
    def create(cls, **values: Any) -> HashPolicy:
        """Build a policy, raising ConfigInvalid on any out-of-range value."""
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigInvalid(f"Invalid Argon2 configuration: {_summarize(exc)}") from exc

    @classmethod
    def profile(cls, name: str = "default") -> HashPolicy:
        """Return one of the named runtime profiles."""
        try:
            values = _PROFILES[name]
        except KeyError:
            raise ConfigInvalid(f"Unknown hash profile {name!r}. Expected one of: {', '.join(_PROFILES)}") from None
        return cls.create(**values)

    @classmethod
    def from_settings(cls, settings: Settings) -> HashPolicy:
        """Layer the ARGON_* overrides from settings over the selected profile."""
        values = dict(_PROFILES.get(settings.argon_profile, {}))
        overrides = {
            "memory_cost_kb": settings.argon_memory_cost_kb,
            "iterations": settings.argon_iterations,
            "parallelism": settings.argon_parallelism,
            "output_length": settings.argon_output_length,
            "variant": settings.argon_variant,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        if settings.argon_secret_key:
            values["secret_key"] = settings.argon_secret_key.encode("utf-8")
        return cls.create(**values)

    def revalidate(self) -> HashPolicy:
        """Re-run validation on this instance.

        model_construct() skips validation entirely; components that receive a
        policy call this so a bypassed policy is rejected before first use.
        """
        data = {name: getattr(self, name, None) for name in type(self).model_fields}
        if isinstance(data.get("secret_key"), SecretBytes):
            data["secret_key"] = data["secret_key"].get_secret_value()
        return type(self).create(**data)

    def secret_bytes(self) -> bytes | None:
        return self.secret_key.get_secret_value() if self.secret_key is not None else None


_PROFILES: dict[str, dict[str, Any]] = {
    "default": {},
    "development": {"memory_cost_kb": 4096, "iterations": 1, "parallelism": 1},
    "production": {"memory_cost_kb": 65536, "iterations": 3, "parallelism": 4},
}


def _summarize(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "policy"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)
