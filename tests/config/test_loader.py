from pathlib import Path
import textwrap

import pytest

from infractl.config.loader import build_config, build_gitlab_config, load_config_data
from infractl.errors import InputValidationError


def test_load_config_minimal_ok(tmp_path: Path):
    cfg_text = textwrap.dedent("""
        namespace: directory
        network_cidr: 10.20.0.0/16
        domain: example.lab
        admin_password: changeme
    """)
    f = tmp_path / "bootstrap.yaml"
    f.write_text(cfg_text)

    cfg = build_config(load_config_data(f))
    assert cfg.namespace == "directory"
    assert cfg.base_dn == "dc=example,dc=lab"
    assert cfg.config_password.get_secret_value() == "changeme"


def test_env_vars_are_expanded(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("LDAP_ADMIN_PW", "from-env")
    f = tmp_path / "bootstrap.yaml"
    f.write_text("domain: example.lab\nadmin_password: ${LDAP_ADMIN_PW}\n")

    data = load_config_data(f)
    assert data["admin_password"] == "from-env"


def test_sibling_secrets_file_is_merged(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("INFRACTL_SECRETS_FILE", raising=False)
    (tmp_path / "bootstrap.yaml").write_text("domain: example.lab\nadmin_password: ''\n")
    (tmp_path / "secrets.yaml").write_text("admin_password: s3cret\n")

    data = load_config_data(tmp_path / "bootstrap.yaml")
    assert data["domain"] == "example.lab"
    assert data["admin_password"] == "s3cret"


def test_secrets_file_from_env(tmp_path: Path, monkeypatch):
    secrets = tmp_path / "elsewhere.yaml"
    secrets.write_text("config_password: cfgpw\n")
    monkeypatch.setenv("INFRACTL_SECRETS_FILE", str(secrets))
    (tmp_path / "bootstrap.yaml").write_text("domain: example.lab\n")

    data = load_config_data(tmp_path / "bootstrap.yaml")
    assert data["config_password"] == "cfgpw"


def test_missing_file_is_input_error(tmp_path: Path):
    with pytest.raises(InputValidationError, match="config file not found"):
        load_config_data(tmp_path / "nope.yaml")


def test_malformed_yaml_is_input_error(tmp_path: Path):
    f = tmp_path / "bad.yaml"
    f.write_text("domain: [unclosed\n")
    with pytest.raises(InputValidationError, match="failed to read"):
        load_config_data(f)


def test_undecodable_file_is_input_error(tmp_path: Path):
    f = tmp_path / "binary.yaml"
    f.write_bytes(b"\xff\xfe\x00bad")
    with pytest.raises(InputValidationError, match="failed to read"):
        load_config_data(f)


def test_non_mapping_file_is_input_error(tmp_path: Path):
    f = tmp_path / "list.yaml"
    f.write_text("- a\n- b\n")
    with pytest.raises(InputValidationError, match="Expected mapping"):
        load_config_data(f)


def test_build_config_reports_first_error_without_pydantic_prefix():
    with pytest.raises(InputValidationError) as exc:
        build_config(
            {"network_cidr": "8.8.8.0/24", "domain": "example.lab", "admin_password": "x"}
        )
    msg = str(exc.value)
    assert msg.startswith("network_cidr: ")
    assert "private network" in msg
    assert "Value error" not in msg


def test_build_gitlab_config_requires_domain():
    with pytest.raises(InputValidationError, match="domain"):
        build_gitlab_config({})
