#!/usr/bin/env python3
"""
okta-aws-token: exchange an Okta SAML login for temporary AWS credentials.

Drives the Okta sign-in page (including the verify-code MFA step) in a
headless browser, decodes the SAML assertion into the AWS roles it grants,
assumes the selected role via STS and merges the temporary credentials into
a named profile of ~/.aws/credentials.
"""

import argparse
import base64
import configparser
import contextlib
import enum
import getpass
import os
import re
import sys
import traceback
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Optional

import boto3
from bs4 import BeautifulSoup
from selenium import webdriver
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_CONFIG_PATH = os.path.expanduser("~/.okta-aws-token")
DEFAULT_AWS_CONFIG_PATH = os.path.join(".aws", "credentials")
DEFAULT_OUTPUT_FORMAT = "json"
DEFAULT_REGION = "us-east-1"
DEFAULT_SESSION_DURATION = 3600  # 1 hour
MAX_SESSION_DURATION = 43200  # STS max is 12 h
DEFAULT_PAGE_TIMEOUT = 30  # seconds the browser waits for a selector

ACCOUNT_SECTION_PREFIX = "account "
DEBUG_DIR = ".debug"
USER_AGENT = f"okta-aws-token v{__version__}"

SAML_ROLE_ATTRIBUTE = "https://aws.amazon.com/SAML/Attributes/Role"
SAML_SESSION_ATTRIBUTE = "https://aws.amazon.com/SAML/Attributes/SessionDuration"

ROLE_ARN_RE = re.compile(r"^arn:aws:iam::(\d+):([^/]+)/(.+)$")

# Credentials file lines, matched the way configparser reads them.
SECTION_HEADER_RE = re.compile(r"^\[(?P<header>.+)\]")
OPTION_LINE_RE = re.compile(r"^(?P<key>[^\s=:#;\[][^=:]*?)\s*[=:]")

# Keys written into a credentials profile, in file order.
PROFILE_KEYS = (
    "output",
    "region",
    "aws_access_key_id",
    "aws_secret_access_key",
    "aws_session_token",
    "aws_security_token",
)

# Identity provider page layouts
PROVIDERS = {
    "okta": {
        "name": "Okta",
        "username_field": 'input[name="username"]',
        "password_field": 'input[name="password"]',
        "login_button": 'input[name="login"]',
        "signin_feedback": "#signin-feedback",
        "passcode_field": 'input[name="passcode"]',
        "verify_button": "#verify_factor",
        "mfa_error": "#oktaSoftTokenAttempt\\.passcode\\.error:not(:empty)",
        "mfa_error_text": "#oktaSoftTokenAttempt\\.edit\\.errors",
        "assertion_field": 'input[name="SAMLResponse"]',
    },
}

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class OktaAwsTokenError(Exception):
    """Base class for every failure raised by okta-aws-token."""


class ConfigurationError(OktaAwsTokenError):
    pass


class AuthenticationError(OktaAwsTokenError):
    """The identity provider rejected the password or the verify code.

    ``message`` carries the feedback text shown on the sign-in page.
    """

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class AssertionParseError(OktaAwsTokenError):
    pass


class RoleArnParseError(AssertionParseError):
    def __init__(self, arn):
        super().__init__(f"Unable to parse role ARN: {arn}")
        self.arn = arn


class NoRolesAssignedError(OktaAwsTokenError):
    def __init__(self):
        super().__init__("No roles are assigned to your SAML account. Please contact Ops.")


class StoreWriteError(OktaAwsTokenError):
    def __init__(self, path, reason):
        super().__init__(f"Unable to write credentials to {path}: {reason}")
        self.path = path


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Role:
    name: str
    account_id: str
    role_arn: str
    principal_arn: str


@dataclass(frozen=True)
class RoleArnComponents:
    arn: str
    account_id: str
    type: str
    value: str


@dataclass(frozen=True)
class IssuedCredential:
    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: object = None

    @classmethod
    def from_sts(cls, credentials):
        """Build from the ``Credentials`` dict returned by STS."""
        return cls(
            access_key_id=credentials["AccessKeyId"],
            secret_access_key=credentials["SecretAccessKey"],
            session_token=credentials["SessionToken"],
            expiration=credentials.get("Expiration"),
        )


# ---------------------------------------------------------------------------
# Configuration helpers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Account:
    name: str
    account_number: str
    idp_entry_url: Optional[str] = None
    region: str = DEFAULT_REGION


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, loaded once at startup and never mutated."""

    default_account: str
    accounts: dict = field(default_factory=dict)
    provider: str = "okta"
    idp_entry_url: Optional[str] = None
    aws_config_path: str = DEFAULT_AWS_CONFIG_PATH
    output_format: str = DEFAULT_OUTPUT_FORMAT
    region: str = DEFAULT_REGION

    @property
    def store_path(self):
        return os.path.join(os.path.expanduser("~"), self.aws_config_path)

    def account(self, name):
        try:
            return self.accounts[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown account '{name}'. Known accounts: {', '.join(self.accounts)}"
            ) from None

    def entry_url_for(self, account):
        url = account.idp_entry_url or self.idp_entry_url
        if not url:
            raise ConfigurationError(
                f"No idp_entry_url configured for account '{account.name}'"
            )
        return url


def load_settings(config_path):
    """Load settings from an INI file.

    The ``[default]`` section holds the global options; every
    ``[account NAME]`` section describes one AWS account.
    """
    if not os.path.exists(config_path):
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    cfg = configparser.ConfigParser(interpolation=None)
    try:
        cfg.read(config_path)
    except configparser.Error as exc:
        raise ConfigurationError(f"Unable to parse {config_path}: {exc}") from exc

    sec = "default"
    if not cfg.has_section(sec):
        raise ConfigurationError(f"Missing [{sec}] section in {config_path}")

    def cf(key, fallback=None):
        """Return the [default] value for key, else fallback."""
        value = cfg.get(sec, key, fallback=None)
        return value.strip() if value and value.strip() else fallback

    region = cf("region", DEFAULT_REGION)
    accounts = {}
    for section in cfg.sections():
        if not section.startswith(ACCOUNT_SECTION_PREFIX):
            continue
        name = section[len(ACCOUNT_SECTION_PREFIX):].strip()
        number = cfg.get(section, "account_number", fallback="").strip()
        if not number.isdigit():
            raise ConfigurationError(
                f"Account '{name}' needs a numeric account_number, got '{number}'"
            )
        accounts[name] = Account(
            name=name,
            account_number=number,
            idp_entry_url=cfg.get(section, "idp_entry_url", fallback=None),
            region=cfg.get(section, "region", fallback=region),
        )

    if not accounts:
        raise ConfigurationError(f"No [account NAME] sections found in {config_path}")

    default_account = cf("default_account")
    if default_account is None and len(accounts) == 1:
        default_account = next(iter(accounts))
    if default_account not in accounts:
        raise ConfigurationError(f"default_account '{default_account}' is not a configured account")

    provider = cf("provider", "okta")
    if provider not in PROVIDERS:
        raise ConfigurationError(
            f"Unknown provider '{provider}'. Valid providers: {', '.join(PROVIDERS)}"
        )

    return Settings(
        default_account=default_account,
        accounts=accounts,
        provider=provider,
        idp_entry_url=cf("idp_entry_url"),
        aws_config_path=cf("aws_config_path", DEFAULT_AWS_CONFIG_PATH),
        output_format=cf("output_format", DEFAULT_OUTPUT_FORMAT),
        region=region,
    )


def _debug_enabled():
    return bool(os.environ.get("DEBUG"))


def _debug(message):
    if _debug_enabled():
        print(f"[DEBUG] {message}")


# ---------------------------------------------------------------------------
# Terminal prompting
# ---------------------------------------------------------------------------


class TerminalPrompter:
    """Interactive prompts on the controlling terminal.

    Ctrl-C and end-of-input propagate to the caller as KeyboardInterrupt and
    EOFError.
    """

    def input(self, message):
        return input(f"{message} ").strip()

    def password(self, message):
        return getpass.getpass(f"{message} ")

    def choose(self, message, choices):
        """Return the value of one ``(label, value)`` pair from *choices*."""
        print(f"\n{message}")
        for i, (label, _) in enumerate(choices):
            print(f"  [{i + 1}] {label}")

        while True:
            try:
                idx = int(input("\nSelection: ").strip()) - 1
                if 0 <= idx < len(choices):
                    return choices[idx][1]
            except ValueError:
                pass
            print("Invalid selection, please try again.")


# ---------------------------------------------------------------------------
# Browser driving
# ---------------------------------------------------------------------------


class SeleniumBrowser:
    """The handful of page actions the login flow needs, on top of WebDriver.

    Selectors are CSS selectors. A selector list (``"a, b"``) in
    :meth:`wait_for` returns as soon as either element is present.
    """

    def __init__(self, driver, timeout=DEFAULT_PAGE_TIMEOUT):
        self._driver = driver
        self._timeout = timeout

    @classmethod
    def launch(cls, url, user_agent=USER_AGENT, timeout=DEFAULT_PAGE_TIMEOUT):
        options = webdriver.ChromeOptions()
        options.add_argument("--headless=new")
        options.add_argument(f"--user-agent={user_agent}")
        browser = cls(webdriver.Chrome(options=options), timeout)
        try:
            browser._driver.get(url)
        except Exception:
            browser.close()
            raise
        return browser

    def _find(self, selector):
        return self._driver.find_element(By.CSS_SELECTOR, selector)

    def fill(self, selector, value):
        element = self._find(selector)
        element.clear()
        element.send_keys(value)

    def click(self, selector):
        self._find(selector).click()

    def wait_for(self, selector):
        WebDriverWait(self._driver, self._timeout).until(
            EC.presence_of_element_located((By.CSS_SELECTOR, selector))
        )

    def exists(self, selector):
        return bool(self._driver.find_elements(By.CSS_SELECTOR, selector))

    def evaluate(self, script, *args):
        return self._driver.execute_script(script, *args)

    def html(self):
        return self._driver.page_source

    def screenshot(self, path):
        self._driver.save_screenshot(path)

    def dump_html(self, path):
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(self.html())

    def close(self):
        self._driver.quit()


# ---------------------------------------------------------------------------
# Identity provider login
# ---------------------------------------------------------------------------


class SessionState(enum.Enum):
    START = "start"
    CREDENTIALS_SUBMITTED = "credentials-submitted"
    PRIMARY_AUTH_CHECKED = "primary-auth-checked"
    MFA_CHALLENGED = "mfa-challenged"
    MFA_CHECKED = "mfa-checked"
    ASSERTION_OBTAINED = "assertion-obtained"
    FAILED = "failed"


class AuthSession:
    """One attempt at signing in to the identity provider.

    Walks the sign-in page through username/password and the verify code,
    and returns the base64 SAMLResponse the provider posts to AWS. Any
    credential not supplied up front is prompted for. The browser is opened
    once per session and closed on every exit from :meth:`login`.
    """

    def __init__(self, idp_entry_url, username=None, password=None, otp=None,
                 provider="okta", prompter=None, browser_factory=None, debug=None):
        self.idp_entry_url = idp_entry_url
        self.username = username
        self.password = password
        self.otp = otp
        self.state = SessionState.START
        self._provider = PROVIDERS[provider]
        self._prompter = prompter or TerminalPrompter()
        self._browser_factory = browser_factory or SeleniumBrowser.launch
        self._debug = _debug_enabled() if debug is None else debug
        self._browser = None

    def _transition(self, state):
        _debug(f"Login state: {self.state.value} -> {state.value}")
        self.state = state

    def login(self):
        if self.state is not SessionState.START:
            raise OktaAwsTokenError("An AuthSession can only be used for one login attempt")

        name = self._provider["name"]
        if not self.username:
            self.username = self._prompter.input(f"{name} username (ex. user@domain.com):")
        if not self.password:
            self.password = self._prompter.password(f"{name} password:")

        with contextlib.ExitStack() as cleanup:
            self._browser = self._browser_factory(self.idp_entry_url, USER_AGENT)
            cleanup.callback(self._browser.close)

            print("Logging in…")
            self._submit_credentials()
            self._check_primary_auth()
            self._submit_passcode()
            self._check_mfa()
            return self._read_assertion()

    def _submit_credentials(self):
        p = self._provider
        self._browser.fill(p["username_field"], self.username)
        self._browser.fill(p["password_field"], self.password)
        self._browser.click(p["login_button"])
        self._browser.wait_for("body")
        self._transition(SessionState.CREDENTIALS_SUBMITTED)

    def _check_primary_auth(self):
        self._transition(SessionState.PRIMARY_AUTH_CHECKED)
        feedback = self._provider["signin_feedback"]
        if self._browser.exists(feedback):
            self._fail(self._text_of(feedback))

    def _submit_passcode(self):
        p = self._provider
        if not self.otp:
            self.otp = self._prompter.input(f"{p['name']} verify code:")
        print("Verifying…")
        self._browser.fill(p["passcode_field"], self.otp)
        self._browser.click(p["verify_button"])
        self._transition(SessionState.MFA_CHALLENGED)

    def _check_mfa(self):
        p = self._provider
        # Whichever shows up first: the error marker or the SAML form.
        self._browser.wait_for(f"{p['mfa_error']}, {p['assertion_field']}")
        self._transition(SessionState.MFA_CHECKED)
        if self._browser.exists(p["mfa_error"]):
            self._fail(self._text_of(p["mfa_error_text"]))

    def _read_assertion(self):
        saml_assertion = _extract_saml_response(self._browser.html())
        if not saml_assertion:
            self._fail("Could not find SAMLResponse on the identity provider page.")
        self._transition(SessionState.ASSERTION_OBTAINED)
        return saml_assertion

    def _text_of(self, selector):
        text = self._browser.evaluate(
            "return document.querySelector(arguments[0]).innerText;", selector
        )
        return (text or "").strip()

    def _fail(self, message):
        self._transition(SessionState.FAILED)
        if self._debug:
            _capture_failure(self._browser)
        raise AuthenticationError(message)


def _capture_failure(browser, directory=None):
    """Save a screenshot and the page markup; never raises."""
    directory = directory or os.path.join(os.getcwd(), DEBUG_DIR)
    try:
        os.makedirs(directory, exist_ok=True)
        browser.screenshot(os.path.join(directory, "error.png"))
        browser.dump_html(os.path.join(directory, "error.html"))
        print(f"[DEBUG] Saved error.png and error.html to {directory}")
    except Exception as exc:
        print(f"[DEBUG] Could not capture the failing page: {exc}", file=sys.stderr)


def _extract_saml_response(html):
    """Return the SAMLResponse value from an HTML form, or None."""
    tag = BeautifulSoup(html, "lxml").find("input", {"name": "SAMLResponse"})
    return tag.get("value") if tag else None


def login(idp_entry_url, username=None, password=None, otp=None, **session_options):
    """Sign in and return the raw base64 SAML assertion."""
    return AuthSession(idp_entry_url, username, password, otp, **session_options).login()


# ---------------------------------------------------------------------------
# SAML parsing
# ---------------------------------------------------------------------------


def _parse_saml_document(saml_assertion):
    """Decode the assertion and return its XML root with namespaces stripped."""
    try:
        root = ET.fromstring(base64.b64decode(saml_assertion))
    except (ValueError, TypeError, ET.ParseError) as exc:
        raise AssertionParseError(f"Unable to decode SAML assertion: {exc}") from exc

    for element in root.iter():
        if isinstance(element.tag, str):
            element.tag = element.tag.rsplit("}", 1)[-1]
    return root


def _attribute_values(root, name):
    """Return the non-blank values of every attribute called *name*, or None."""
    values = None
    for attr in root.iter("Attribute"):
        if attr.get("Name") != name:
            continue
        values = values or []
        for value_el in attr.iter("AttributeValue"):
            text = (value_el.text or "").strip()
            if text:
                values.append(text)
    return values


def parse_role_arn(arn):
    match = ROLE_ARN_RE.match(arn)
    if not match:
        raise RoleArnParseError(arn)
    return RoleArnComponents(
        arn=arn,
        account_id=match.group(1),
        type=match.group(2),
        value=match.group(3),
    )


def parse_role_attribute_value(text):
    """Parse a single Role attribute value into a Role.

    The value is a comma-separated pair of ARNs:
    ``arn:aws:iam::ACCT:saml-provider/P,arn:aws:iam::ACCT:role/R``
    or in reverse order.
    """
    arns = [parse_role_arn(part.strip()) for part in text.split(",")]
    provider = next((a for a in arns if a.type == "saml-provider"), None)
    role = next((a for a in arns if a.type == "role"), None)
    if provider is None or role is None:
        raise RoleArnParseError(text)

    return Role(
        name=role.value,
        account_id=role.account_id,
        role_arn=role.arn,
        principal_arn=provider.arn,
    )


def decode_roles(saml_assertion):
    """Return the roles granted by *saml_assertion*, in document order."""
    root = _parse_saml_document(saml_assertion)
    values = _attribute_values(root, SAML_ROLE_ATTRIBUTE)
    if not values:
        raise NoRolesAssignedError()

    roles = [parse_role_attribute_value(value) for value in values]
    _debug(f"SAML assertion grants {len(roles)} role(s)")
    return roles


def saml_session_duration(saml_assertion):
    """Return the SessionDuration the assertion requests, or None."""
    values = _attribute_values(_parse_saml_document(saml_assertion), SAML_SESSION_ATTRIBUTE)
    for value in values or ():
        try:
            return int(value)
        except ValueError:
            pass
    return None


# ---------------------------------------------------------------------------
# Role selection
# ---------------------------------------------------------------------------


def resolve_role(roles, desired_role_name, target_account_id, prompter):
    """Pick the role to assume.

    An exact name + account match wins without prompting: the same role
    name may exist in several accounts. Otherwise a lone role is used as is,
    and several roles are offered as a list, with the account id appended
    to each label when they span more than one account.
    """
    account_ids = []
    for role in roles:
        if role.account_id not in account_ids:
            account_ids.append(role.account_id)
    multiple_accounts = len(account_ids) > 1

    if desired_role_name:
        for role in roles:
            if role.name == desired_role_name and role.account_id == target_account_id:
                return role

    if len(roles) == 1:
        return roles[0]

    choices = []
    for role in roles:
        label = role.name
        if multiple_accounts:
            label += f" ({role.account_id})"
        choices.append((label, role))
    return prompter.choose("Please select a role:", choices)


# ---------------------------------------------------------------------------
# AWS credentials
# ---------------------------------------------------------------------------


def exchange_token(saml_assertion, account, role, duration_seconds, client=None):
    """Call STS AssumeRoleWithSAML and return an IssuedCredential."""
    sts = client or boto3.client("sts", region_name=account.region)
    response = sts.assume_role_with_saml(
        RoleArn=role.role_arn,
        PrincipalArn=role.principal_arn,
        SAMLAssertion=saml_assertion,
        DurationSeconds=min(int(duration_seconds), MAX_SESSION_DURATION),
    )
    return IssuedCredential.from_sts(response["Credentials"])


def _new_store():
    store = configparser.ConfigParser(interpolation=None)
    store.optionxform = str  # leave key case alone
    return store


def _splice_profile(text, label, values):
    """Return *text* with the PROFILE_KEYS of section *label* set to *values*.

    Lines outside that section, and lines inside it for other keys, are
    returned exactly as they were.
    """
    lines = text.splitlines(keepends=True)

    start = end = None
    for i, line in enumerate(lines):
        match = SECTION_HEADER_RE.match(line)
        if not match:
            continue
        if start is not None:
            end = i
            break
        if match.group("header") == label:
            start = i

    if start is None:
        if text and not text.endswith("\n"):
            text += "\n"
        if text.strip() and text.splitlines()[-1].strip():
            text += "\n"
        new_lines = [f"{key} = {values[key]}\n" for key in PROFILE_KEYS]
        return text + f"[{label}]\n" + "".join(new_lines) + "\n"

    if end is None:
        end = len(lines)
    if not lines[start].endswith("\n"):
        lines[start] += "\n"

    body = []
    written = set()
    in_replaced_value = False
    for line in lines[start + 1:end]:
        if in_replaced_value and line.strip() and line[0].isspace():
            continue  # continuation of a value being replaced
        in_replaced_value = False
        match = OPTION_LINE_RE.match(line)
        if match and match.group("key") in values:
            key = match.group("key")
            if key not in written:
                body.append(f"{key} = {values[key]}\n")
                written.add(key)
            in_replaced_value = True
            continue
        body.append(line)

    # Missing keys go after the section's last non-blank line.
    insert_at = len(body)
    while insert_at and not body[insert_at - 1].strip():
        insert_at -= 1
    if insert_at and not body[insert_at - 1].endswith("\n"):
        body[insert_at - 1] += "\n"
    missing = [f"{key} = {values[key]}\n" for key in PROFILE_KEYS if key not in written]
    body[insert_at:insert_at] = missing

    return "".join(lines[:start + 1] + body + lines[end:])


def write_token_to_config(credential, label, region, output_format, store_path):
    """Merge *credential* into the *label* section of the credentials file.

    Only the keys in PROFILE_KEYS are overwritten. Every other line of the
    file, other sections and comments included, is kept byte for byte. The
    file is replaced in one rename and left with mode 0o600. There is no
    locking between processes.
    """
    values = {
        "output": output_format,
        "region": region,
        "aws_access_key_id": credential.access_key_id,
        "aws_secret_access_key": credential.secret_access_key,
        "aws_session_token": credential.session_token,
        "aws_security_token": credential.session_token,
    }

    tmp_path = f"{store_path}.tmp"
    try:
        os.makedirs(os.path.dirname(store_path) or ".", exist_ok=True)
        text = ""
        if os.path.exists(store_path):
            with open(store_path, encoding="utf-8", newline="") as fh:
                text = fh.read()

        # Refuse to splice into a file configparser cannot read.
        _new_store().read_string(text, source=store_path)
        text = _splice_profile(text, label, values)

        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            os.chmod(tmp_path, 0o600)
            fh.write(text)
        os.replace(tmp_path, store_path)
    except (OSError, configparser.Error, ValueError) as exc:
        with contextlib.suppress(OSError):
            os.remove(tmp_path)
        raise StoreWriteError(store_path, exc) from exc


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_profile_name(role, account_name, override=None):
    if override:
        return override
    return f"{account_name}-{role.name}"


def run(settings, args, prompter=None, browser_factory=None, token_exchange=exchange_token):
    """Log in, pick a role, fetch credentials and store them.

    Returns the profile name the credentials were written under.
    """
    prompter = prompter or TerminalPrompter()
    account = settings.account(args.account)
    idp_entry_url = settings.entry_url_for(account)

    session = AuthSession(
        idp_entry_url,
        args.username,
        args.password,
        args.otp,
        provider=settings.provider,
        prompter=prompter,
        browser_factory=browser_factory,
    )
    saml_assertion = session.login()

    roles = decode_roles(saml_assertion)
    role = resolve_role(roles, args.role, account.account_number, prompter)

    duration = (
        args.duration_seconds
        or saml_session_duration(saml_assertion)
        or DEFAULT_SESSION_DURATION
    )
    print(f"\nAssuming role: {role.role_arn}")
    credential = token_exchange(saml_assertion, account, role, duration)

    profile_name = build_profile_name(role, account.name, args.profile)
    write_token_to_config(
        credential, profile_name, settings.region, settings.output_format, settings.store_path
    )

    print("\n\n----------------------------------------------------------------")
    print(f"Your new access key pair has been stored in {settings.store_path} "
          f"under the '{profile_name}' profile.")
    print(f"Note that it will expire at {credential.expiration}.")
    print("After this time, you may safely rerun this script to refresh your access key pair.")
    print(f"To use this credential, call the AWS CLI with the --profile option "
          f"(e.g. aws --profile {profile_name} ec2 describe-instances).")
    print("----------------------------------------------------------------\n\n")
    return profile_name


def _build_parser(settings=None):
    """Build the CLI parser; without *settings* --account is not validated."""
    name = PROVIDERS[settings.provider if settings else "okta"]["name"]
    parser = argparse.ArgumentParser(
        description="Exchange an Okta SAML login for temporary AWS credentials.",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH,
                        help="Path to config file (default: ~/.okta-aws-token)")
    parser.add_argument("--username", help=f"{name} username (ex. user@domain.com)")
    parser.add_argument("--password", help=f"{name} password")
    parser.add_argument("--otp", help=f"{name} otp (2FA)")
    parser.add_argument("--role", help="Name of SAML role to assume")
    if settings:
        parser.add_argument("--account", default=settings.default_account,
                            choices=list(settings.accounts),
                            help=f'Name of account to switch to. Defaults to "{settings.default_account}".')
    else:
        parser.add_argument("--account",
                            help="Name of account to switch to. Defaults to default_account from the config file.")
    parser.add_argument("--profile",
                        help="Profile name that the AWS credentials should be saved as. "
                             "Defaults to ACCOUNT-ROLE.")
    parser.add_argument("--durationSeconds", dest="duration_seconds", type=int,
                        help="Duration of the session, in seconds.")
    return parser


def main(argv=None):
    print(f"okta-aws-token v{__version__}\n")

    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", default=DEFAULT_CONFIG_PATH)
    known, _ = pre.parse_known_args(argv)

    # A broken config must not stop --help and --version from working.
    settings = config_error = None
    try:
        settings = load_settings(known.config)
    except ConfigurationError as exc:
        config_error = exc
    args = _build_parser(settings).parse_args(argv)

    try:
        if config_error is not None:
            raise config_error
        run(settings, args)
    except (KeyboardInterrupt, EOFError):
        print("\nAborted.", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(exc, file=sys.stderr)
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
