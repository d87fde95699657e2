"""Tests for the scheduler retry loop, the Lambda handler, the CLI and logging."""

from __future__ import annotations

import json
import logging
import uuid
from unittest.mock import MagicMock

import pytest

from auth0_ingestion import cli, scheduler
from auth0_ingestion.entrypoints import aws_lambda
from auth0_ingestion.errors import ConfigurationFault, IntegrationValidationError
from auth0_ingestion.logging_config import JsonFormatter
from auth0_ingestion.secrets import resolve_secret


class TestSyncWithRetries:
    def test_retries_then_succeeds(self, ingestion_config, monkeypatch):
        run_sync = MagicMock(side_effect=[RuntimeError("502"), {"fetch-users": 3}])
        monkeypatch.setattr(cli, "run_sync", run_sync)
        sleeps = []

        result = scheduler.sync_with_retries(ingestion_config, None, sleep=sleeps.append)

        assert result == {"fetch-users": 3}
        assert sleeps == [30]

    def test_gives_up_after_max_retries(self, ingestion_config, monkeypatch):
        monkeypatch.setattr(cli, "run_sync", MagicMock(side_effect=RuntimeError("down")))
        sleeps = []

        assert scheduler.sync_with_retries(ingestion_config, None, sleep=sleeps.append) is None
        assert sleeps == [30, 60, 120]

    @pytest.mark.parametrize("error", [ConfigurationFault("depth"), IntegrationValidationError("cfg")])
    def test_configuration_errors_not_retried(self, ingestion_config, monkeypatch, error):
        run_sync = MagicMock(side_effect=error)
        monkeypatch.setattr(cli, "run_sync", run_sync)

        with pytest.raises(type(error)):
            scheduler.sync_with_retries(ingestion_config, None, sleep=lambda s: None)
        assert run_sync.call_count == 1

    def test_builds_single_interval_job(self, ingestion_config):
        sched = scheduler.build_scheduler(ingestion_config, None)

        jobs = sched.get_jobs()
        assert [j.id for j in jobs] == ["auth0"]
        assert jobs[0].max_instances == 1


class TestLambdaHandler:
    @pytest.fixture(autouse=True)
    def _patch(self, monkeypatch, ingestion_config):
        monkeypatch.setattr(aws_lambda, "configure_logging", lambda level: None)
        monkeypatch.setattr(aws_lambda, "load_config", lambda: ingestion_config)

    def test_sync(self, monkeypatch):
        monkeypatch.setattr(aws_lambda, "run_sync", lambda config, db: {"fetch-users": 2})

        resp = aws_lambda.handler({}, None)

        assert resp["statusCode"] == 200
        assert json.loads(resp["body"]) == {"results": {"fetch-users": 2}}

    def test_sync_failure(self, monkeypatch):
        monkeypatch.setattr(aws_lambda, "run_sync", MagicMock(side_effect=RuntimeError("boom")))

        resp = aws_lambda.handler({"action": "sync"}, None)

        assert resp["statusCode"] == 500
        assert json.loads(resp["body"]) == {"error": "boom"}

    def test_validate_rejected(self, monkeypatch):
        monkeypatch.setattr(
            aws_lambda, "validate_invocation",
            MagicMock(side_effect=IntegrationValidationError("missing domain")),
        )

        resp = aws_lambda.handler({"action": "validate"}, None)

        assert resp["statusCode"] == 400

    def test_unknown_action(self):
        assert aws_lambda.handler({"action": "purge"}, None)["statusCode"] == 400


class TestCli:
    def test_parser(self):
        args = cli.build_parser().parse_args(["status", "--limit", "3"])
        assert args.func is cli.cmd_status
        assert args.limit == 3

    def test_status_without_database(self, monkeypatch, ingestion_config, capsys):
        monkeypatch.setattr(cli, "load_config", lambda: ingestion_config)

        cli.cmd_status(cli.build_parser().parse_args(["status"]))

        assert "No database configured." in capsys.readouterr().out

    def test_sync_dry_run(self, monkeypatch, ingestion_config):
        monkeypatch.setattr(cli, "load_config", lambda: ingestion_config)
        run_sync = MagicMock(return_value={})
        monkeypatch.setattr(cli, "run_sync", run_sync)

        cli.cmd_sync(cli.build_parser().parse_args(["sync"]))

        run_sync.assert_called_once_with(ingestion_config, None)


def test_json_formatter_merges_extras():
    record = logging.LogRecord("ingestion.pagination", logging.DEBUG, __file__, 1, "split %s", ("x",), None)
    record.suffix = "a0"
    record.depth = 2

    line = json.loads(JsonFormatter().format(record))

    assert line["message"] == "split x"
    assert line["suffix"] == "a0"
    assert line["depth"] == 2
    assert "provider" not in line


def test_json_formatter_uses_event_time_and_tolerates_odd_extras():
    record = logging.LogRecord("ingestion.base_provider", logging.INFO, __file__, 1, "run", (), None)
    record.created = 0.0
    record.run_id = uuid.UUID(int=1)

    line = json.loads(JsonFormatter().format(record))

    assert line["timestamp"] == "1970-01-01T00:00:00+00:00"
    assert line["run_id"] == "00000000-0000-0000-0000-000000000001"


def test_plain_secret_passes_through():
    assert resolve_secret("plain-value") == "plain-value"


def test_aws_secret_json_key(monkeypatch):
    import boto3

    client = MagicMock()
    client.get_secret_value.return_value = {"SecretString": '{"client_secret": "abc"}'}
    monkeypatch.setattr(boto3, "client", lambda *a, **kw: client)

    assert resolve_secret("aws-secret://auth0/prod#client_secret") == "abc"
    client.get_secret_value.assert_called_once_with(SecretId="auth0/prod")
