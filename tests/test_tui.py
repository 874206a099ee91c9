"""
Tests for the TUI entry point and transcript rendering.

The Textual app itself is not started; main() is exercised with
RoleplayTUI.run patched out.
"""

import pytest
from pathlib import Path
from unittest.mock import patch

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from roleplay.interface.controller import TranscriptEntry
from roleplay.interface.tui import RoleplayTUI, main, render_entry
from roleplay.state import JsonSessionStore, SessionRecord


SHERLOCK = """\
id: sherlock
name: Sherlock Holmes
backstory: Consulting detective.
"""


class TestRenderEntry:

    def test_chat_turn_has_speaker(self):
        text = render_entry(TranscriptEntry("character", "Elementary.", "Sherlock Holmes"))
        assert "Sherlock Holmes: Elementary." in text.plain

    def test_error_marked(self):
        text = render_entry(TranscriptEntry("error", "Unknown command: /x"))
        assert text.plain == "✗ Unknown command: /x"

    def test_notice_plain(self):
        assert render_entry(TranscriptEntry("system", "Chat history cleared")).plain == "Chat history cleared"


@patch("roleplay.interface.tui.setup_logging")
@patch("roleplay.interface.tui.load_config")
class TestMain:

    @pytest.fixture(autouse=True)
    def data_dir(self, tmp_path):
        self.dir = tmp_path
        return tmp_path

    def config(self):
        return {
            "backend": "mock",
            "model": None,
            "data_dir": str(self.dir),
            "default_user": None,
            "history_max": 50,
            "log_level": "INFO",
        }

    def test_imports_character_file(self, mock_load, mock_logging):
        mock_load.return_value = self.config()
        source = self.dir / "sherlock.yaml"
        source.write_text(SHERLOCK)

        with patch.object(RoleplayTUI, "run") as mock_run:
            assert main(["-c", str(source), "-u", "watson"]) == 0

        mock_run.assert_called_once()
        assert (self.dir / "characters" / "sherlock.json").exists()

    def test_resumes_latest_session(self, mock_load, mock_logging):
        mock_load.return_value = self.config()
        JsonSessionStore(self.dir / "sessions").save(
            SessionRecord(id="session-prev", character_id="sherlock", user_id="watson")
        )

        with patch.object(RoleplayTUI, "__init__", return_value=None) as mock_init, \
                patch.object(RoleplayTUI, "run"):
            main(["-c", "sherlock", "-u", "watson"])

        controller = mock_init.call_args[0][0]
        assert controller.state.session_id == "session-prev"
        assert controller.history.max_size == 50

    def test_new_session_skips_resume(self, mock_load, mock_logging):
        mock_load.return_value = self.config()
        JsonSessionStore(self.dir / "sessions").save(
            SessionRecord(id="session-prev", character_id="sherlock", user_id="watson")
        )

        with patch.object(RoleplayTUI, "__init__", return_value=None) as mock_init, \
                patch.object(RoleplayTUI, "run"):
            main(["-c", "sherlock", "-u", "watson", "--new-session"])

        assert mock_init.call_args[0][0].state.session_id != "session-prev"

    def test_undecodable_session_file_does_not_stop_startup(self, mock_load, mock_logging):
        mock_load.return_value = self.config()
        sessions = self.dir / "sessions" / "sherlock"
        sessions.mkdir(parents=True)
        (sessions / "garbled.json").write_bytes(b'{"id": "\xff\xfe"}')

        with patch.object(RoleplayTUI, "run") as mock_run:
            assert main(["-c", "sherlock", "-u", "watson"]) == 0
            assert main(["-c", "sherlock", "-u", "watson", "-s", "garbled"]) == 0

        assert mock_run.call_count == 2

    def test_bad_character_file(self, mock_load, mock_logging, capsys):
        mock_load.return_value = self.config()
        source = self.dir / "broken.json"
        source.write_text("{")

        assert main(["-c", str(source), "-u", "watson"]) == 1
        assert "Invalid character file" in capsys.readouterr().err

    def test_remember_writes_where_config_is_read(self, mock_load, mock_logging):
        """--remember saves next to the config that was loaded, not under --data-dir."""
        mock_load.return_value = self.config()
        elsewhere = self.dir / "elsewhere"

        with patch("roleplay.interface.tui.set_backend") as mock_backend, \
                patch("roleplay.interface.tui.set_model") as mock_model, \
                patch.object(RoleplayTUI, "run"):
            main([
                "-c", "sherlock", "-u", "watson", "--data-dir", str(elsewhere),
                "--backend", "mock", "--model", "m1", "--remember",
            ])

        config_dir = mock_load.call_args[0][0]
        mock_backend.assert_called_once_with("mock", config_dir)
        mock_model.assert_called_once_with("m1", config_dir)
        assert config_dir != elsewhere

    def test_user_required(self, mock_load, mock_logging):
        mock_load.return_value = self.config()
        with pytest.raises(SystemExit):
            main(["-c", "sherlock"])
