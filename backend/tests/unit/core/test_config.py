from pydantic import SecretStr

from app.core.config import Settings, _classify_site_mode


def test_robokassa_credentials_unwrap_secrets():
    cfg = Settings(
        ROBOKASSA_MERCHANT_LOGIN="studio",
        ROBOKASSA_PASSWORD1=SecretStr("one"),
        ROBOKASSA_PASSWORD2=SecretStr("two"),
    )

    creds = cfg.robokassa_credentials()

    assert creds.merchant_login == "studio"
    assert creds.password1 == "one"
    assert creds.password2 == "two"
    assert creds.is_configured
    assert "one" not in repr(cfg.robokassa_password1)


def test_is_test_flag_normalized():
    assert Settings(ROBOKASSA_IS_TEST=False).robokassa_is_test == "0"
    assert Settings(ROBOKASSA_IS_TEST=True).robokassa_is_test == "1"
    assert Settings(ROBOKASSA_IS_TEST="").robokassa_is_test == "1"


def test_trust_success_redirect_defaults_to_true():
    assert Settings().robokassa_trust_success_redirect is True


def test_classify_site_mode():
    assert _classify_site_mode(" PROD ") == ("prod", True, False)
    assert _classify_site_mode("local") == ("local", False, True)
    assert _classify_site_mode(None) == ("", False, False)

