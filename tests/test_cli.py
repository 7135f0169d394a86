"""Tests for the command-line interface."""

import json
import shlex
import sys
from types import SimpleNamespace

import pytest

from src.cli import (
    CLIConfig,
    CommandRunner,
    ConfigError,
    build_parser,
    consume,
    load_config_file,
    main,
    parse_duration,
)
from src.pollwatch import (
    FileRecord,
    Op,
    PollingWatcher,
    WatchedFileDeletedError,
    WatcherConfig,
)


def python_command(code, *args):
    return shlex.join([sys.executable, "-c", code, *args])


class TestParseDuration:
    """Tests for parse_duration."""

    @pytest.mark.parametrize("text, expected", [
        ("100ms", 0.1),
        ("1.5s", 1.5),
        ("1m30s", 90.0),
        ("1h", 3600.0),
        ("250us", 0.00025),
        ("500ns", 0.0000005),
        ("2", 2.0),
        (" 3s ", 3.0),
    ])
    def test_valid(self, text, expected):
        assert parse_duration(text) == pytest.approx(expected)

    @pytest.mark.parametrize("text", ["", "abc", "10x", "ms", "5s garbage", "nan", "inf", "-inf", "1e999"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)


class TestCLIConfig:
    """Tests for CLIConfig and config files."""

    def test_from_dict_defaults(self):
        config = CLIConfig.from_dict({})
        assert config.interval == "200ms"
        assert config.recursive is True
        assert config.dotfiles is True
        assert config.cmd == ""
        assert config.keepalive is False

    def test_from_dict_values(self):
        config = CLIConfig.from_dict({
            "interval": "1s",
            "recursive": False,
            "dotfiles": False,
            "cmd": "make",
            "startcmd": True,
            "listfiles": True,
            "pipe": True,
            "keepalive": True,
        })
        assert config.interval == "1s"
        assert config.recursive is False
        assert config.dotfiles is False
        assert config.cmd == "make"
        assert config.startcmd and config.listfiles and config.pipe and config.keepalive

    def test_from_args(self):
        args = build_parser().parse_args(["--interval", "2s", "--no-dotfiles", "--cmd", "ls"])
        config = CLIConfig.from_args(args)
        assert config.interval == "2s"
        assert config.dotfiles is False
        assert config.cmd == "ls"

    def test_load_config_file(self, tmp_path):
        path = tmp_path / "watcher.json"
        path.write_text(json.dumps({"interval": "50ms", "recursive": False}))

        config = load_config_file(path)

        assert config.interval == "50ms"
        assert config.recursive is False

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config_file(tmp_path / "missing.json")

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_config_file(path)

    def test_load_non_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigError, match="must be an object"):
            load_config_file(path)

    @pytest.mark.parametrize("data", [{"interval": 1}, {"interval": 0.5}, {"cmd": ["make"]}])
    def test_from_dict_rejects_non_string(self, data):
        with pytest.raises(ConfigError, match="must be a string"):
            CLIConfig.from_dict(data)


class TestBuildParser:
    """Tests for argument parsing."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("POLLWATCH_INTERVAL", raising=False)
        args = build_parser().parse_args([])
        assert args.paths == []
        assert args.interval == "100ms"
        assert args.recursive is True
        assert args.dotfiles is True
        assert args.max_events == 0
        assert args.ignore == []

    def test_interval_from_environment(self, monkeypatch):
        monkeypatch.setenv("POLLWATCH_INTERVAL", "5s")
        assert build_parser().parse_args([]).interval == "5s"

    def test_flags(self):
        args = build_parser().parse_args([
            "a", "b", "--no-recursive", "--list", "--pipe",
            "--ignore", "x", "y", "--max-events", "3",
        ])
        assert args.paths == ["a", "b"]
        assert args.recursive is False
        assert args.list is True
        assert args.pipe is True
        assert args.ignore == ["x", "y"]
        assert args.max_events == 3


class TestCommandRunner:
    """Tests for CommandRunner class."""

    def test_empty_command(self):
        with pytest.raises(ConfigError):
            CommandRunner("   ")

    def test_exit_code(self):
        runner = CommandRunner(python_command("import sys; sys.exit(3)"))
        assert runner.run() == 3

    def test_missing_executable(self, tmp_path):
        runner = CommandRunner(shlex.join([str(tmp_path / "no-such-program")]))
        assert runner.run() == 127

    def test_pipe_event_text(self, tmp_path):
        out = tmp_path / "out.txt"
        code = "import sys; open(sys.argv[1], 'w').write(sys.stdin.read())"
        runner = CommandRunner(python_command(code, str(out)), pipe=True)

        assert runner.run("FILE \"a.txt\" CREATE [/a.txt]") == 0
        assert out.read_text() == "FILE \"a.txt\" CREATE [/a.txt]"


class TestConsume:
    """Tests for the event consumer loop."""

    def test_prints_event_and_stops_on_command_failure(self, tmp_path, capsys):
        watcher = PollingWatcher(WatcherConfig(event_queue_size=0))
        (tmp_path / "a.txt").write_text("a")
        record = FileRecord.from_stat(tmp_path / "a.txt", (tmp_path / "a.txt").stat())
        watcher.trigger_event(Op.CREATE, record)
        runner = CommandRunner(python_command("import sys; sys.exit(1)"))
        shutdown = SimpleNamespace(should_exit=False)

        consume(watcher, runner, keepalive=False, shutdown=shutdown)

        assert shutdown.should_exit is True
        assert '"a.txt" CREATE' in capsys.readouterr().out
        watcher.close()

    def test_stops_when_nothing_left_to_watch(self, tmp_path):
        watcher = PollingWatcher()
        watcher.errors.put(WatchedFileDeletedError(tmp_path / "gone"))
        shutdown = SimpleNamespace(should_exit=False)

        consume(watcher, None, keepalive=False, shutdown=shutdown)

        assert shutdown.should_exit is True
        watcher.close()


class TestMain:
    """Tests for main() error exits."""

    def test_invalid_interval(self, tmp_path):
        assert main(["--interval", "soon", str(tmp_path)]) == 2

    def test_missing_config_file(self, tmp_path):
        assert main(["--config", str(tmp_path / "missing.json"), str(tmp_path)]) == 2

    def test_numeric_interval_in_config_file(self, tmp_path):
        path = tmp_path / "watcher.json"
        path.write_text(json.dumps({"interval": 1}))
        assert main(["--config", str(path), str(tmp_path)]) == 2

    def test_missing_path(self, tmp_path):
        assert main([str(tmp_path / "missing")]) == 1
