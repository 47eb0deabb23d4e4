from pathlib import Path

import pytest

from config import Config
from errors import ConfigError


def test_from_env_reads_settings():
    config = Config.from_env({
        "ANTHROPIC_API_KEY": "sk-test",
        "DOCTREE_MODEL": "claude-test",
        "DOCTREE_CACHE_DIR": ".cache_here",
        "DOCTREE_DOCUMENT": "DOCS.md",
        "DOCTREE_MAX_CONCURRENT": "2",
        "DOCTREE_MAX_RETRIES": "5",
        "DOCTREE_RETRY_DELAY": "0.5",
    })

    assert config.api_key == "sk-test"
    assert config.model == "claude-test"
    assert config.cache_dir(Path("/proj")) == Path("/proj/.cache_here")
    assert config.document_path(Path("/proj")) == Path("/proj/DOCS.md")
    assert config.max_concurrent == 2
    policy = config.retry_policy()
    assert policy.max_attempts == 6
    assert policy.delay_for(2) == 1.0


def test_defaults_without_environment():
    config = Config.from_env({})

    assert config.api_key is None
    assert config.cache_dir_name == ".doctree_cache"
    assert config.document_name == "README.md"
    assert config.retry_policy().max_attempts == 4


def test_invalid_numbers_raise_config_error():
    with pytest.raises(ConfigError):
        Config.from_env({"DOCTREE_MAX_RETRIES": "three"})


def test_overrides_skip_none_values():
    config = Config.from_env({"DOCTREE_MODEL": "from-env"}).with_overrides(model=None, api_key="sk-cli")

    assert config.model == "from-env"
    assert config.api_key == "sk-cli"


def test_validate_rejects_bad_settings():
    with pytest.raises(ConfigError, match="ANTHROPIC_API_KEY"):
        Config().validate()
    Config().validate(require_api_key=False)

    with pytest.raises(ConfigError, match="plain directory name"):
        Config(api_key="k", cache_dir_name="a/b").validate()
    with pytest.raises(ConfigError):
        Config(api_key="k", max_concurrent=0).validate()
