import pytest

from striche.config import GeneratorConfig, parse_service_map
from striche.model.errors import ConfigurationError


def test_defaults_when_environment_is_empty():
    cfg = GeneratorConfig.from_env({})
    assert cfg.region == "us-east-1"
    assert cfg.default_rate_limit_rps == 100
    assert cfg.default_rate_limit_burst == 200


def test_environment_overrides():
    cfg = GeneratorConfig.from_env(
        {"AWS_REGION": "eu-west-2", "DEFAULT_RATE_LIMIT_RPS": "50", "DEFAULT_RATE_LIMIT_BURST": "75"}
    )
    assert (cfg.region, cfg.default_rate_limit_rps, cfg.default_rate_limit_burst) == ("eu-west-2", 50, 75)


@pytest.mark.parametrize("value", ["abc", "0", "-5"])
def test_invalid_rate_limit_raises(value):
    with pytest.raises(ConfigurationError):
        GeneratorConfig.from_env({"DEFAULT_RATE_LIMIT_RPS": value})


def test_parse_service_map():
    assert parse_service_map(None) == {}
    assert parse_service_map('{"auth": " https://auth "}') == {"auth": "https://auth"}


@pytest.mark.parametrize("text", ["not json", "[1, 2]", '{"auth": 3}', '{"auth": ""}'])
def test_parse_service_map_rejects_bad_input(text):
    with pytest.raises(ConfigurationError):
        parse_service_map(text)
