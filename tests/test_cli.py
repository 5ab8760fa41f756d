import argparse
import textwrap

import pytest

import okta_aws_token
from fakes import (
    ADMIN_111,
    OKTA_111,
    FakeBrowser,
    FakePrompter,
    FakeSTSClient,
    build_saml_response,
    saml_page,
)
from okta_aws_token import (
    Account,
    ConfigurationError,
    IssuedCredential,
    Role,
    Settings,
    build_profile_name,
    exchange_token,
    load_settings,
    main,
    run,
)

CREDENTIAL = IssuedCredential("ASIAE2E", "e2e-secret", "e2e-token", "2026-10-19T12:00:00Z")

CONFIG = textwrap.dedent(
    """\
    [default]
    provider = okta
    idp_entry_url = https://corp.okta.com/home/amazon_aws/0oa123/272
    default_account = prod
    region = eu-west-1

    [account prod]
    account_number = 111111111111

    [account staging]
    account_number = 222222222222
    idp_entry_url = https://corp.okta.com/home/amazon_aws/0oa456/272
    region = us-west-2
    """
)


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("DEBUG", raising=False)
    return tmp_path


@pytest.fixture
def settings():
    return Settings(
        default_account="prod",
        accounts={"prod": Account("prod", "111111111111", region="us-east-1")},
        idp_entry_url="https://corp.okta.com/home/amazon_aws/0oa123/272",
    )


def make_args(**overrides):
    values = dict(
        username="user@example.com",
        password="hunter2",
        otp="123456",
        role=None,
        account="prod",
        profile=None,
        duration_seconds=None,
    )
    values.update(overrides)
    return argparse.Namespace(**values)


class RecordingExchange:
    def __init__(self):
        self.calls = []

    def __call__(self, saml_assertion, account, role, duration_seconds):
        self.calls.append((saml_assertion, account, role, duration_seconds))
        return CREDENTIAL


def run_once(settings, args, saml):
    browser = FakeBrowser(page=saml_page(saml))
    exchange = RecordingExchange()
    profile = run(settings, args, prompter=FakePrompter(),
                  browser_factory=browser.factory, token_exchange=exchange)
    return profile, exchange, browser


def test_run_writes_account_role_profile(home, settings):
    saml = build_saml_response([f"{ADMIN_111},{OKTA_111}"])

    profile, exchange, browser = run_once(settings, make_args(), saml)

    assert profile == "prod-Admin"
    assert browser.closed == 1
    [(assertion, account, role, duration)] = exchange.calls
    assert assertion == saml
    assert account.account_number == "111111111111"
    assert role.role_arn == ADMIN_111
    assert duration == 3600
    content = (home / ".aws" / "credentials").read_text(encoding="utf-8")
    assert "[prod-Admin]\n" in content
    assert "aws_session_token = e2e-token\n" in content


def test_run_uses_profile_override_verbatim(home, settings):
    saml = build_saml_response([f"{ADMIN_111},{OKTA_111}"])

    profile, _, _ = run_once(settings, make_args(profile="My Profile"), saml)

    assert profile == "My Profile"
    assert "[My Profile]\n" in (home / ".aws" / "credentials").read_text(encoding="utf-8")


def test_run_duration_from_assertion_then_flag(home, settings):
    saml = build_saml_response([f"{ADMIN_111},{OKTA_111}"], session_duration=7200)

    _, exchange, _ = run_once(settings, make_args(), saml)
    assert exchange.calls[0][3] == 7200

    _, exchange, _ = run_once(settings, make_args(duration_seconds=900), saml)
    assert exchange.calls[0][3] == 900


def test_build_profile_name():
    role = Role("Admin", "111111111111", ADMIN_111, OKTA_111)
    assert build_profile_name(role, "prod") == "prod-Admin"
    assert build_profile_name(role, "prod", "custom") == "custom"


def test_exchange_token_caps_duration():
    client = FakeSTSClient()
    role = Role("Admin", "111111111111", ADMIN_111, OKTA_111)

    credential = exchange_token("PHNhbWw+", Account("prod", "111111111111"), role, 86400,
                                client=client)

    assert credential == IssuedCredential(
        "ASIAEXAMPLE", "secret", "session-token", "2026-10-19T12:00:00Z"
    )
    assert client.calls == [{
        "RoleArn": ADMIN_111,
        "PrincipalArn": OKTA_111,
        "SAMLAssertion": "PHNhbWw+",
        "DurationSeconds": 43200,
    }]


def test_load_settings(tmp_path):
    path = tmp_path / "config"
    path.write_text(CONFIG, encoding="utf-8")

    settings = load_settings(str(path))

    assert settings.default_account == "prod"
    assert settings.output_format == "json"
    assert list(settings.accounts) == ["prod", "staging"]
    prod, staging = settings.account("prod"), settings.account("staging")
    assert prod.region == "eu-west-1"
    assert staging.region == "us-west-2"
    assert settings.entry_url_for(prod).endswith("0oa123/272")
    assert settings.entry_url_for(staging).endswith("0oa456/272")


@pytest.mark.parametrize(
    "content",
    [
        "[account prod]\naccount_number = 1\n",
        "[default]\nprovider = okta\n",
        "[default]\nprovider = onelogin\n[account prod]\naccount_number = 1\n",
        "[default]\ndefault_account = dev\n[account prod]\naccount_number = 1\n",
        "[default]\n[account prod]\naccount_number = prod\n",
    ],
)
def test_load_settings_rejects_bad_config(tmp_path, content):
    path = tmp_path / "config"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_settings(str(path))


def test_unknown_account(settings):
    with pytest.raises(ConfigurationError, match="Unknown account"):
        settings.account("nope")


def test_main_exits_non_zero_on_error(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(tmp_path / "missing")])

    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert "Configuration file not found" in err
    assert "Traceback" in err


@pytest.mark.parametrize("flag, expected", [("--help", "--durationSeconds"), ("--version", "1.0.0")])
def test_help_and_version_work_without_config(tmp_path, capsys, flag, expected):
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(tmp_path / "missing"), flag])

    assert excinfo.value.code == 0
    assert expected in capsys.readouterr().out


def test_end_of_input_at_prompt_aborts(tmp_path, capsys, monkeypatch):
    path = tmp_path / "config"
    path.write_text(CONFIG, encoding="utf-8")

    def closed_stdin(settings, args):
        raise EOFError

    monkeypatch.setattr(okta_aws_token, "run", closed_stdin)

    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(path)])

    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert "Aborted." in err
    assert "Traceback" not in err
