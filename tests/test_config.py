import logging
from pathlib import Path

import pytest

from casechat_analytics.config import DEFAULT_API_URL, load_settings
from casechat_analytics.log import configure_logging


def test_defaults():
    settings = load_settings({})
    assert settings.api_url == DEFAULT_API_URL
    assert settings.api_token is None
    assert settings.poll_interval == 2.0
    assert settings.job_timeout == 300.0
    assert settings.refresh_interval == 60.0
    assert settings.export_dir == Path("data/exports")
    assert settings.log_level == "INFO"


def test_values_from_env():
    settings = load_settings(
        {
            "CASECHAT_API_URL": "https://dash.example.edu/api/",
            "CASECHAT_API_TOKEN": " abc ",
            "CASECHAT_JOB_TIMEOUT": "180",
            "CASECHAT_POLL_INTERVAL": "0.5",
            "CASECHAT_EXPORT_DIR": "/tmp/exports",
            "CASECHAT_LOG_LEVEL": "debug",
        }
    )
    assert settings.api_url == "https://dash.example.edu/api"
    assert settings.api_token == "abc"
    assert settings.job_timeout == 180.0
    assert settings.poll_interval == 0.5
    assert settings.export_dir == Path("/tmp/exports")
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    "env",
    [
        {"CASECHAT_JOB_TIMEOUT": "60"},
        {"CASECHAT_JOB_TIMEOUT": "600"},
        {"CASECHAT_POLL_INTERVAL": "soon"},
        {"CASECHAT_REFRESH_INTERVAL": "0"},
    ],
)
def test_invalid_values(env):
    with pytest.raises(ValueError):
        load_settings(env)


def test_configure_logging_sets_package_level():
    configure_logging("warning")
    assert logging.getLogger("casechat_analytics").level == logging.WARNING
    configure_logging(logging.DEBUG)
    assert logging.getLogger("casechat_analytics").level == logging.DEBUG
    with pytest.raises(ValueError):
        configure_logging("chatty")
