"""Tests for the eswait command."""
import argparse
from unittest.mock import Mock

import pytest

from monitoring_operator.errors import ReadinessTimeout
from monitoring_operator.eswait import build_parser, main, parse_duration
from monitoring_operator.readiness import ReadinessGate


class TestParseDuration:

    @pytest.mark.parametrize("value,seconds", [
        ("500ms", 0.5),
        ("30s", 30),
        ("1m", 60),
        ("1.5m", 90),
        ("2h", 7200),
    ])
    def test_valid(self, value, seconds):
        assert parse_duration(value) == seconds

    @pytest.mark.parametrize("value", ["", "10", "abc", "5d", "-1s"])
    def test_invalid(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_duration(value)


class TestParser:

    def test_defaults(self):
        args = build_parser().parse_args(["http://search:9200", "2.11.1"])
        assert args.url == "http://search:9200"
        assert args.version == "2.11.1"
        assert args.data_nodes == 1
        assert args.timeout == 60

    def test_options(self):
        args = build_parser().parse_args(
            ["http://search:9200", "2.11.1", "--number-of-data-nodes", "3", "--timeout", "5m"])
        assert args.data_nodes == 3
        assert args.timeout == 300


class TestMain:

    def test_ready_exits_zero(self, monkeypatch):
        monkeypatch.delenv("ES_USER", raising=False)
        monkeypatch.delenv("ES_PASSWORD", raising=False)
        gate = Mock(spec=ReadinessGate)

        assert main(["http://search:9200", "2.11.1", "--number-of-data-nodes", "2"], gate=gate) == 0
        gate.wait.assert_called_once_with(
            "http://search:9200", "2.11.1", 2, 60.0, username=None, password=None)

    def test_timeout_exits_one(self):
        gate = Mock(spec=ReadinessGate)
        gate.wait.side_effect = ReadinessTimeout("not ready", reason="cluster health is red")
        assert main(["http://search:9200", "2.11.1", "--timeout", "1s"], gate=gate) == 1

    def test_credentials_from_environment(self, monkeypatch):
        monkeypatch.setenv("ES_USER", "admin")
        monkeypatch.setenv("ES_PASSWORD", "secret")
        gate = Mock(spec=ReadinessGate)

        main(["http://search:9200", "2.11.1"], gate=gate)
        assert gate.wait.call_args.kwargs == {"username": "admin", "password": "secret"}

    def test_bad_arguments_exit(self):
        with pytest.raises(SystemExit):
            main(["http://search:9200"], gate=Mock(spec=ReadinessGate))
