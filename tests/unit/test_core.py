"""
Basic Tests for Core Functionality
Settings, call script config, provider validation, schema DDL, background
runner, error log, knowledge lookup, health service and follow-up worker
"""
import asyncio
import logging
from datetime import datetime, timezone
from unittest.mock import MagicMock

import httpx
import pytest

from leadline.api.v1.dependencies import load_call_script
from leadline.core.config import ConfigManager, Settings, get_settings
from leadline.core.validation import ProviderValidator, validate_providers_on_startup
from leadline.domain.errors import ProviderAPIError
from leadline.domain.models.client import Client
from leadline.domain.services.client_lookup import CallScript
from leadline.domain.services.error_log_service import ErrorLogService, ErrorSeverity
from leadline.domain.services.follow_up_scheduler import FollowUpRunResult
from leadline.domain.services.health_service import HealthService
from leadline.infrastructure.knowledge.task_context import TaskContextClient
from leadline.infrastructure.storage.schema import render_ddl
from leadline.utils.background import BackgroundTaskRunner
from leadline.workers.follow_up_worker import FollowUpWorker


def make_settings(**kwargs):
    return Settings(_env_file=None, **kwargs)


class TestSettings:

    def test_webhook_url(self):
        settings = make_settings(public_base_url="https://calls.example.com/")

        assert settings.webhook_url == "https://calls.example.com/api/v1/webhooks/telnyx"

    def test_settings_built_once(self):
        assert get_settings() is get_settings()

    def test_configured_flags(self):
        settings = make_settings(supabase_url="https://x.supabase.co", supabase_service_key=None)

        assert settings.supabase_configured is False
        assert make_settings(telnyx_api_key="KEY").telnyx_configured is True


class TestConfigManager:

    def test_packaged_call_script(self):
        config = ConfigManager()

        assert config.get("voice.name") == "female"
        assert config.get("missing.key", "fallback") == "fallback"

    def test_env_override_and_substitution(self, tmp_path, monkeypatch):
        (tmp_path / "call_script.yaml").write_text(
            "script:\n  intro: Hello\n  transfer: One moment\nvoice:\n  name: female\n"
        )
        (tmp_path / "staging.yaml").write_text(
            "script:\n  intro: ${STAGING_INTRO}\n"
        )
        monkeypatch.setenv("STAGING_INTRO", "Hi from staging")

        config = ConfigManager(env="staging", config_dir=str(tmp_path))

        assert config.get("script.intro") == "Hi from staging"
        assert config.get("script.transfer") == "One moment"

    def test_malformed_call_script_falls_back_to_defaults(self, tmp_path):
        (tmp_path / "call_script.yaml").write_text("script: [unclosed\n")

        script = load_call_script(make_settings(config_dir=str(tmp_path)))

        assert script == CallScript()

    def test_call_script_from_config(self, tmp_path):
        (tmp_path / "call_script.yaml").write_text(
            "script:\n  greeting:\n    intro: Custom intro\ngather:\n  timeout_millis: 5000\n"
        )

        script = CallScript.from_config(ConfigManager(config_dir=str(tmp_path)))

        assert script.intro == "Custom intro"
        assert script.timeout_millis == 5000
        assert script.fallback == CallScript().fallback


class TestProviderValidation:

    def test_missing_required_settings(self):
        validator = ProviderValidator(make_settings())

        all_valid, results = validator.validate_all()

        assert all_valid is False
        failing = {r.setting for r in results if not r.is_valid}
        assert {"SUPABASE_URL", "TELNYX_API_KEY", "TELNYX_CONNECTION_ID"} <= failing

    def test_optional_settings_fatal_only_when_strict(self):
        settings = make_settings(
            supabase_url="https://x.supabase.co",
            supabase_service_key="service",
            telnyx_api_key="KEY",
            telnyx_phone_number="+15550009999",
            telnyx_connection_id="conn",
        )

        validate_providers_on_startup(settings, strict=False)
        with pytest.raises(RuntimeError):
            validate_providers_on_startup(settings, strict=True)


class TestSchemaDDL:

    def test_unique_keys_present(self):
        ddl = render_ddl()

        assert "CREATE TABLE calls" in ddl
        assert "UNIQUE (call_control_id)" in ddl
        assert "uq_call_recordings_call_id" in ddl
        assert "CREATE INDEX ix_clients_follow_up_due" in ddl


class TestBackgroundTaskRunner:

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, caplog):
        runner = BackgroundTaskRunner()

        async def failing():
            raise ProviderAPIError("speak", 422, "gone")

        with caplog.at_level(logging.ERROR):
            runner.spawn(failing(), "speak v3:abc")
            await runner.drain()

        assert runner.pending == 0
        assert "speak v3:abc" in caplog.text

    @pytest.mark.asyncio
    async def test_drain_cancels_after_timeout(self):
        runner = BackgroundTaskRunner()
        task = runner.spawn(asyncio.sleep(10), "slow")

        await runner.drain(timeout=0.05)
        await asyncio.gather(task, return_exceptions=True)

        assert task.cancelled()


class TestErrorLogService:

    @pytest.mark.asyncio
    async def test_writes_row(self):
        supabase = MagicMock()
        service = ErrorLogService(supabase, "telnyx-webhook")

        await service.log("provider_api_error", "speak failed", context={"action": "speak"})

        supabase.table.assert_called_with("error_logs")
        row = supabase.table.return_value.insert.call_args[0][0]
        assert row == {
            "source": "telnyx-webhook",
            "error_type": "provider_api_error",
            "severity": "error",
            "message": "speak failed",
            "context": {"action": "speak"},
        }

    @pytest.mark.asyncio
    async def test_write_failure_swallowed(self):
        supabase = MagicMock()
        supabase.table.return_value.insert.return_value.execute.side_effect = RuntimeError("down")

        await ErrorLogService(supabase, "telnyx-call").log(
            "database_error", "insert failed", severity=ErrorSeverity.CRITICAL
        )

    @pytest.mark.asyncio
    async def test_counts_default_to_zero(self):
        service = ErrorLogService(None, "system-health-check")

        assert await service.count_since(datetime.now(timezone.utc)) == 0
        assert await service.count_unresolved() == 0


class TestTaskContextClient:

    CLIENT = Client(id="c1", name="Dana")

    @pytest.mark.asyncio
    async def test_returns_context(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"context": "Shipped the pricing page."})

        knowledge = TaskContextClient(
            "https://kb.example.com/query",
            auth_token="token",
            transport=httpx.MockTransport(handler),
        )

        context = await knowledge.fetch_context(self.CLIENT)

        assert context == "Shipped the pricing page."
        assert seen[0].headers["Authorization"] == "Bearer token"
        assert b"Dana" in seen[0].content

    @pytest.mark.asyncio
    async def test_failure_returns_empty(self):
        def handler(request):
            return httpx.Response(500, text="boom")

        knowledge = TaskContextClient("https://kb.example.com/query", transport=httpx.MockTransport(handler))

        assert await knowledge.fetch_context(self.CLIENT) == ""


class TestHealthService:

    @pytest.mark.asyncio
    async def test_all_healthy(self, telephony, error_log):
        supabase = MagicMock()

        report = await HealthService(supabase, telephony, error_log).run_check()

        assert report.status == "healthy"
        assert [s.service for s in report.services] == ["database", "telnyx"]
        inserted = [c.args[0]["service"] for c in supabase.table.return_value.insert.call_args_list]
        assert inserted == ["database", "telnyx"]
        assert error_log.types() == []

    @pytest.mark.asyncio
    async def test_telnyx_down(self, telephony, error_log):
        async def failing_balance():
            raise ProviderAPIError("balance", 401, "unauthorized")

        telephony.get_balance = failing_balance

        report = await HealthService(MagicMock(), telephony, error_log).run_check()

        telnyx = report.services[1]
        assert report.status == "unhealthy"
        assert telnyx.status == "down"
        assert telnyx.details["status"] == 401
        assert error_log.types() == ["service_unavailable"]


class TestFollowUpWorker:

    @pytest.mark.asyncio
    async def test_runs_until_stopped(self):
        worker = None

        class OneShotScheduler:
            async def run(self):
                worker.stop()
                return FollowUpRunResult(message="Processed 2 clients", calls_made=2)

        worker = FollowUpWorker(make_settings(), scheduler_factory=OneShotScheduler)

        await asyncio.wait_for(worker.run(), timeout=1)

        stats = worker.get_stats()
        assert stats["running"] is False
        assert stats["runs_completed"] == 1
        assert stats["calls_made"] == 2

    @pytest.mark.asyncio
    async def test_counts_failed_runs(self):
        worker = None

        class FailingScheduler:
            async def run(self):
                worker.stop()
                raise RuntimeError("supabase unreachable")

        worker = FollowUpWorker(make_settings(), scheduler_factory=FailingScheduler)

        await asyncio.wait_for(worker.run(), timeout=1)

        assert worker.get_stats()["runs_failed"] == 1

    def test_requires_supabase(self):
        with pytest.raises(RuntimeError):
            FollowUpWorker(make_settings(supabase_url=None)).initialize()
