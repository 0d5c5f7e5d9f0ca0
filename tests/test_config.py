"""
Tests for the guard section of the yaml configuration.
"""

from sshguard.config import GuardConfig, list_config_files, load_guard_config, validate_guard_config


def _write(path, text):
    path.write_text(text)
    return str(path)


class TestLoadGuardConfig:

    def test_defaults_with_interface(self, tmp_path):
        cfg = _write(tmp_path / "sshguard.yaml", "guard:\n  interface_tracked: eth0\n")
        config, errors = load_guard_config([cfg])
        assert errors == []
        assert config == GuardConfig(interface_tracked='eth0')
        assert config.ssh_listen_port == 22
        assert config.interval_rate_seconds == 10

    def test_later_files_win(self, tmp_path):
        main = _write(tmp_path / "sshguard.yaml", "guard:\n  interface_tracked: eth0\n  ssh_listen_port: 22\n")
        extra = _write(tmp_path / "extra.yaml", "guard:\n  ssh_listen_port: 2222\n")
        config, errors = load_guard_config([main, extra])
        assert errors == []
        assert config.ssh_listen_port == 2222
        assert config.interface_tracked == 'eth0'

    def test_overrides_ignore_none(self, tmp_path):
        cfg = _write(tmp_path / "sshguard.yaml", "guard:\n  interface_tracked: eth0\n  interval_rate_seconds: 30\n")
        config, errors = load_guard_config([cfg], overrides={'interface_tracked': 'wlan0',
                                                             'interval_rate_seconds': None})
        assert errors == []
        assert config.interface_tracked == 'wlan0'
        assert config.interval_rate_seconds == 30

    def test_missing_file_is_skipped(self, tmp_path):
        config, errors = load_guard_config([str(tmp_path / "missing.yaml")], overrides={'interface_tracked': 'eth0'})
        assert errors == []

    def test_unknown_option_is_an_error(self, tmp_path):
        cfg = _write(tmp_path / "sshguard.yaml", "guard:\n  interface_tracked: eth0\n  interfce: eth1\n")
        _, errors = load_guard_config([cfg])
        assert len(errors) == 1
        assert "interfce" in errors[0]

    def test_yaml_error_is_reported(self, tmp_path):
        cfg = _write(tmp_path / "sshguard.yaml", "guard: [unclosed\n")
        _, errors = load_guard_config([cfg], overrides={'interface_tracked': 'eth0'})
        assert len(errors) == 1
        assert "YAML error" in errors[0]

    def test_file_without_guard_section(self, tmp_path):
        cfg = _write(tmp_path / "sshguard.yaml", "events: []\n")
        config, errors = load_guard_config([cfg], overrides={'interface_tracked': 'eth0'})
        assert errors == []


class TestValidateGuardConfig:

    def test_interface_is_required(self):
        errors = validate_guard_config(GuardConfig())
        assert any("interface_tracked" in e for e in errors)

    def test_bad_port_and_interval(self):
        errors = validate_guard_config(GuardConfig(interface_tracked='eth0', ssh_listen_port=70000,
                                                   interval_rate_seconds=0))
        assert len(errors) == 2

    def test_valid(self):
        assert validate_guard_config(GuardConfig(interface_tracked='eth0')) == []


def test_list_config_files(tmp_path):
    conf_d = tmp_path / "conf.d"
    conf_d.mkdir()
    (conf_d / "b.yaml").write_text("")
    (conf_d / "a.yml").write_text("")
    (conf_d / "notes.txt").write_text("")
    main = str(tmp_path / "sshguard.yaml")

    assert list_config_files(main, str(conf_d)) == [main, str(conf_d / "a.yml"), str(conf_d / "b.yaml")]
    assert list_config_files(main, str(tmp_path / "missing")) == [main]
