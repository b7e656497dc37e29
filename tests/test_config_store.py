import json

import pytest

from conftest import BASE_CONFIG, GUILD

from promoter.config_store import JsonConfigStore
from promoter.errors import ConfigurationError
from promoter.tiers import CONFIG_VERSION


@pytest.fixture
def store(tmp_path):
    return JsonConfigStore(tmp_path / "config.json")


def test_missing_file_means_unconfigured(store):
    assert store.load() == {"guilds": {}}
    assert store.get_tier_config(GUILD) is None
    assert store.get_log_channel(GUILD) is None


def test_corrupt_file_is_treated_as_empty(store):
    store.path.write_text("{not json", encoding="utf-8")
    assert store.load() == {"guilds": {}}


def test_update_then_read_back(store):
    store.update_promote(GUILD, new_role=10)
    store.update_promote(GUILD, **{k: v for k, v in BASE_CONFIG.items() if k != "new_role"})

    config = store.get_tier_config(GUILD)
    assert config.to_dict() == dict(BASE_CONFIG, version=CONFIG_VERSION)

    on_disk = json.loads(store.path.read_text(encoding="utf-8"))
    assert on_disk["guilds"][str(GUILD)]["promote"]["version"] == CONFIG_VERSION


def test_partial_settings_raise_configuration_error(store):
    store.update_promote(GUILD, new_role=10, junior_role=11)
    with pytest.raises(ConfigurationError) as excinfo:
        store.get_tier_config(GUILD)
    assert "role full member not configured" in excinfo.value.problems


def test_unknown_setting_is_refused(store):
    with pytest.raises(KeyError):
        store.update_promote(GUILD, greeting_role=3)
    assert not store.path.exists()


def test_log_channel_is_kept_alongside_promote_settings(store):
    store.update_promote(GUILD, new_role=10)
    store.set_log_channel(GUILD, "555")
    assert store.get_log_channel(GUILD) == 555
    assert store.guild(GUILD)["promote"]["new_role"] == 10
    assert store.get_log_channel(GUILD + 1) is None
