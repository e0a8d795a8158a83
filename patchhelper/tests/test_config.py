import pytest
from pydantic import ValidationError

from patchhelper.checks.models import Level
from patchhelper.config import AuditSettings


class TestAuditSettings:
    def test_defaults(self):
        settings = AuditSettings()

        assert settings.match_fuzz == 0
        assert settings.auto_apply_fuzz is None
        assert not settings.auto_apply
        assert settings.fail_on == Level.WARN
        assert settings.base_vendor_dir == "vendor_orig"

    def test_auto_apply_enabled_by_fuzz(self):
        assert AuditSettings(auto_apply_fuzz=0).auto_apply

    def test_file_override_policy_uses_match_fuzz(self):
        assert AuditSettings(match_fuzz=2).file_override_policy().match_fuzz == 2

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            AuditSettings(fuzz=1)

    def test_rejects_negative_fuzz(self):
        with pytest.raises(ValidationError):
            AuditSettings(auto_apply_fuzz=-1)


class TestFromEnv:
    def test_environment_defaults(self, monkeypatch):
        monkeypatch.setenv("PATCHHELPER_FUZZ", "2")
        monkeypatch.setenv("PATCHHELPER_STRICT", "yes")

        settings = AuditSettings.from_env()

        assert settings.match_fuzz == 2
        assert settings.strict

    def test_invalid_int_falls_back(self, monkeypatch):
        monkeypatch.setenv("PATCHHELPER_FUZZ", "lots")
        assert AuditSettings.from_env().match_fuzz == 0

    def test_overrides_win_and_none_is_ignored(self, monkeypatch):
        monkeypatch.setenv("PATCHHELPER_STRICT", "1")

        settings = AuditSettings.from_env(strict=None, show_info=True, path_filter=None)

        assert settings.strict
        assert settings.show_info
        assert settings.path_filter is None

    def test_unset_environment(self, monkeypatch):
        monkeypatch.delenv("PATCHHELPER_FUZZ", raising=False)
        monkeypatch.delenv("PATCHHELPER_STRICT", raising=False)

        settings = AuditSettings.from_env()

        assert settings.match_fuzz == 0
        assert not settings.strict
