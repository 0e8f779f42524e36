"""
Tests for YAML configuration loading, validation and saving.
"""

import logging

import pytest
import yaml

from debrief.config import (
    default_config,
    deep_update,
    get_config_path,
    get_config_value,
    get_recordings_dir,
    load_config,
    save_config,
    validate_config,
)
from debrief.errors import ConfigError


def test_defaults():
    config = default_config()

    assert config['audio']['recording_mode'] == 'mic'
    assert config['audio']['selected_mic_id'] is None
    assert config['recorder']['backend'] == 'auto'
    assert config['recorder']['output_format'] == 'm4a'
    assert config['recorder']['stop_timeout'] == 5.0
    assert config['output']['file_name_format'] == 'recording_{timestamp}'


def test_defaults_are_independent_copies():
    first = default_config()
    first['audio']['recording_mode'] = 'both'
    assert default_config()['audio']['recording_mode'] == 'mic'


def test_config_path_honors_xdg(monkeypatch, temp_dir):
    monkeypatch.setenv('XDG_CONFIG_HOME', str(temp_dir))
    assert get_config_path() == temp_dir / 'debrief' / 'config.yaml'


def test_deep_update_merges_sections():
    merged = deep_update(default_config(), {'recorder': {'backend': 'ffmpeg'}})

    assert merged['recorder']['backend'] == 'ffmpeg'
    assert merged['recorder']['mix_audio'] is True


class TestLoad:

    def test_missing_file_gives_defaults(self, temp_dir):
        assert load_config(temp_dir / 'config.yaml') == default_config()

    def test_user_values_override_defaults(self, temp_dir):
        path = temp_dir / 'config.yaml'
        path.write_text(
            "audio:\n"
            "  recording_mode: both\n"
            "  selected_mic_name: USB Microphone\n"
            "recorder:\n"
            "  stop_timeout: 2\n"
        )

        config = load_config(path)

        assert config['audio']['recording_mode'] == 'both'
        assert config['audio']['selected_mic_name'] == 'USB Microphone'
        assert config['recorder']['stop_timeout'] == 2
        assert config['recorder']['backend'] == 'auto'

    def test_empty_file(self, temp_dir):
        path = temp_dir / 'config.yaml'
        path.write_text('')
        assert load_config(path) == default_config()

    def test_malformed_yaml_falls_back(self, temp_dir, caplog):
        path = temp_dir / 'config.yaml'
        path.write_text("audio: [unclosed\n")
        logger = logging.getLogger('config-test')

        with caplog.at_level(logging.WARNING, logger='config-test'):
            config = load_config(path, logger=logger)

        assert config == default_config()
        assert 'using defaults' in caplog.text

    def test_not_a_mapping(self, temp_dir):
        path = temp_dir / 'config.yaml'
        path.write_text("- just\n- a list\n")
        assert load_config(path) == default_config()

    def test_invalid_value_raises(self, temp_dir):
        path = temp_dir / 'config.yaml'
        path.write_text("recorder:\n  output_format: flac\n")

        with pytest.raises(ConfigError, match='recorder.output_format'):
            load_config(path)


class TestValidate:

    @pytest.mark.parametrize('config, key', [
        ({'audio': {'recording_mode': 'everything'}}, 'audio.recording_mode'),
        ({'recorder': {'mix_audio': 'yes'}}, 'recorder.mix_audio'),
        ({'recorder': {'stop_timeout': True}}, 'recorder.stop_timeout'),
        ({'recorder': {'stop_timeout': 0}}, 'recorder.stop_timeout'),
        ({'output': 'somewhere'}, 'output'),
    ])
    def test_rejects(self, config, key):
        with pytest.raises(ConfigError, match=key.replace('.', r'\.')):
            validate_config(config)

    def test_unknown_keys_ignored(self):
        validate_config({'ui': {'theme': 'dark'}, 'audio': {'volume': 11}})

    def test_optional_values_may_be_null(self):
        validate_config({'recorder': {'helper_path': None}})


class TestSave:

    def test_round_trip(self, temp_dir):
        path = temp_dir / 'nested' / 'config.yaml'
        config = default_config()
        config['audio']['selected_mic_id'] = 'usb'
        config['audio']['recording_mode'] = 'both'

        assert save_config(config, path) == path
        assert load_config(path) == config
        assert not path.with_suffix('.tmp').exists()

    def test_writes_plain_yaml(self, temp_dir):
        path = save_config(default_config(), temp_dir / 'config.yaml')
        assert yaml.safe_load(path.read_text())['output']['directory'] == '~/MeetingRecordings'

    def test_refuses_invalid(self, temp_dir):
        config = default_config()
        config['recorder']['backend'] = 'gstreamer'

        with pytest.raises(ConfigError):
            save_config(config, temp_dir / 'config.yaml')
        assert not (temp_dir / 'config.yaml').exists()


def test_get_config_value():
    config = default_config()

    assert get_config_value(config, 'recorder', 'backend') == 'auto'
    assert get_config_value(config, 'recorder', 'missing') is None
    assert get_config_value(config, 'audio', 'recording_mode', 'deeper') is None


def test_recordings_dir_expands_home(monkeypatch, temp_dir):
    monkeypatch.setenv('HOME', str(temp_dir))
    monkeypatch.setenv('USERPROFILE', str(temp_dir))
    config = default_config()
    config['output']['directory'] = '~/Calls'

    assert get_recordings_dir(config) == temp_dir / 'Calls'
