from pathlib import Path

import pytest

from abs_provisioner.auth.fogfile import FogfileTokenProvider
from abs_provisioner.core.errors import CredentialError


def test_reads_ruby_symbol_keys(tmp_path: Path):
    fog = tmp_path / ".fog"
    fog.write_text(":default:\n  :abs_token: abc123\n", encoding="utf-8")

    assert FogfileTokenProvider(path=fog).token_for("abs") == "abc123"


def test_reads_plain_keys(tmp_path: Path):
    fog = tmp_path / ".fog"
    fog.write_text("default:\n  abs_token: abc123\n", encoding="utf-8")

    assert FogfileTokenProvider(path=fog).token_for("abs") == "abc123"


def test_missing_file_is_a_credential_error(tmp_path: Path):
    with pytest.raises(CredentialError):
        FogfileTokenProvider(path=tmp_path / ".fog").token_for("abs")


def test_missing_token_is_a_credential_error(tmp_path: Path):
    fog = tmp_path / ".fog"
    fog.write_text(":default:\n  :vmpooler_token: other\n", encoding="utf-8")

    with pytest.raises(CredentialError):
        FogfileTokenProvider(path=fog).token_for("abs")
