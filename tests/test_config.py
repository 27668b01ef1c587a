"""Tests for settings loading."""

import pytest

from config import load_settings_conf, SettingsError, DEFAULTS


def write_settings(tmp_path, text):
    (tmp_path / 'settings.conf').write_text(text)
    return str(tmp_path)


def test_missing_file_gives_defaults(tmp_path):
    settings = load_settings_conf(str(tmp_path))
    assert settings['db_url'] == DEFAULTS['db_url']
    assert settings['default_radius_km'] == 10.0
    assert settings['max_search_results'] == 50
    assert settings['port'] == 4000
    assert settings['jwt_secret'] == ''


def test_file_values_override_defaults(tmp_path):
    path = write_settings(tmp_path, (
        "[DEFAULT]\n"
        "db_url = postgresql://app:p%40ss@db:5432/market\n"
        "default_radius_km = 2.5\n"
        "port = 8080\n"
        "log_level = debug\n"
    ))
    settings = load_settings_conf(path)
    assert settings['db_url'] == "postgresql://app:p%40ss@db:5432/market"
    assert settings['default_radius_km'] == 2.5
    assert settings['port'] == 8080
    assert settings['log_level'] == 'DEBUG'
    assert settings['max_listing_images'] == 5


def test_missing_default_section(tmp_path):
    path = write_settings(tmp_path, "[server]\nport = 80\n")
    with pytest.raises(SettingsError) as exc_info:
        load_settings_conf(path)
    assert '[DEFAULT]' in str(exc_info.value)


def test_every_invalid_value_is_reported(tmp_path):
    path = write_settings(tmp_path, (
        "[DEFAULT]\n"
        "port = eighty\n"
        "max_search_results = 0\n"
        "default_radius_km = -1\n"
    ))
    with pytest.raises(SettingsError) as exc_info:
        load_settings_conf(path)
    message = str(exc_info.value)
    assert 'port' in message
    assert 'max_search_results' in message
    assert 'default_radius_km' in message


def test_unparseable_file(tmp_path):
    path = write_settings(tmp_path, "this is not ini\n")
    with pytest.raises(SettingsError):
        load_settings_conf(path)
