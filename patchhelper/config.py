import os

from pydantic import BaseModel, ConfigDict, Field

from patchhelper.checks.models import FileOverridePolicy, Level


def _env_truthy(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


class AuditSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    match_fuzz: int = Field(default=0, ge=0)
    auto_apply_fuzz: int | None = Field(default=None, ge=0)
    strict: bool = False
    vendor_namespaces: list[str] = Field(default_factory=list)
    path_filter: str | None = None
    show_info: bool = False
    show_ignore: bool = False
    sort_by_type: bool = False
    threeway: bool = False
    pad_table_columns: int | None = Field(default=None, ge=0)
    fail_on: Level | None = Level.WARN
    base_vendor_dir: str = "vendor_orig"

    @classmethod
    def from_env(cls, **overrides) -> "AuditSettings":
        """Defaults from PATCHHELPER_* environment variables, then explicit overrides."""
        values: dict[str, object] = {
            "match_fuzz": _env_int("PATCHHELPER_FUZZ", 0),
            "strict": _env_truthy("PATCHHELPER_STRICT"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def auto_apply(self) -> bool:
        return self.auto_apply_fuzz is not None

    def file_override_policy(self) -> FileOverridePolicy:
        return FileOverridePolicy(match_fuzz=self.match_fuzz)
