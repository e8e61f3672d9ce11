import re


from factorio_supervisor import main
from factorio_supervisor.config import effective_settings


class TestExecuteCommand:

    def test_exit_ends_console(self):
        assert main.execute_command("exit", []) is True

    def test_unknown_command_keeps_console(self, caplog):
        with caplog.at_level("INFO", logger="console"):
            assert main.execute_command("fly", []) is False
        assert "Unknown command: 'fly'" in caplog.text

    def test_port(self, capsys):
        main.execute_command("port", [])
        assert 49152 <= int(capsys.readouterr().out) <= 65535

    def test_password_with_length(self, capsys):
        main.execute_command("password", ["16"])
        assert re.fullmatch(r"[a-zA-Z0-9]{16}\n", capsys.readouterr().out)

    def test_invalid_password_length_is_reported(self, caplog):
        with caplog.at_level("ERROR", logger="console"):
            assert main.execute_command("password", ["many"]) is False
        assert "Command 'password' failed" in caplog.text

    def test_start_without_save_prints_usage(self, capsys):
        main.execute_command("start", [])
        assert "Usage: start <save>" in capsys.readouterr().out

    def test_verbose_toggles_setting(self, monkeypatch, capsys):
        monkeypatch.setattr(effective_settings, "VERBOSE_LOGGING", False)
        main.execute_command("verbose", [])
        assert effective_settings.VERBOSE_LOGGING is True
        assert "ON" in capsys.readouterr().out

    def test_version_reports_missing_install(self, monkeypatch, tmp_path, caplog):
        monkeypatch.setattr(effective_settings, "FACTORIO_DIR", tmp_path / "missing")
        with caplog.at_level("ERROR", logger="console"):
            main.execute_command("version", [])
        assert "Command 'version' failed" in caplog.text

    def test_version(self, monkeypatch, file_dir, capsys):
        monkeypatch.setattr(effective_settings, "FACTORIO_DIR", file_dir / "factorio")
        main.execute_command("version", [])
        assert "Factorio 0.1.1" in capsys.readouterr().out
