"""Unit tests for settings and request validation."""

import pytest
from pydantic import ValidationError

from codeexec.config import Settings, settings
from codeexec.models import ExecutionRequest, ExecutionResult


class TestSettingsValidators:
    """Tests for Settings field and model validators."""

    def test_defaults(self):
        config = Settings()

        assert config.default_timeout_ms <= config.max_timeout_ms
        assert config.default_cpu_quota <= config.max_cpus
        assert config.default_memory_limit_bytes <= config.max_memory_limit_bytes

    def test_log_level_is_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(log_level="verbose")

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError):
            Settings(log_format="xml")

    def test_code_dir_must_be_absolute(self):
        with pytest.raises(ValidationError):
            Settings(container_code_dir="app/code")

    def test_code_dir_trailing_slash(self):
        assert Settings(container_code_dir="/sandbox/").container_code_dir == "/sandbox"

    def test_default_timeout_above_max(self):
        with pytest.raises(ValidationError):
            Settings(default_timeout_ms=20000, max_timeout_ms=10000)

    def test_default_memory_above_max(self):
        with pytest.raises(ValidationError):
            Settings(
                default_memory_limit_bytes=512 * 1024 * 1024,
                max_memory_limit_bytes=128 * 1024 * 1024,
            )

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("MAX_CONCURRENT_EXECUTIONS", "3")
        assert Settings().max_concurrent_executions == 3


class TestSettingsHelpers:
    """Tests for grouped views and helper methods."""

    def test_grouped_views(self):
        config = Settings(docker_timeout=30, docker_reconnect_interval=2.5, default_timeout_ms=2000)

        assert config.docker.timeout == 30
        assert config.docker.reconnect_interval == 2.5
        assert config.resources.default_timeout_ms == 2000
        assert config.logging.level == config.log_level
        assert config.api.port == config.api_port

    def test_image_override(self, monkeypatch):
        monkeypatch.setenv("LANG_IMAGE_GO", "golang:1.22-alpine")

        assert settings.get_image_for_language("go", "golang:1.21-alpine") == "golang:1.22-alpine"
        assert settings.get_image_for_language("java", "eclipse-temurin:17") == "eclipse-temurin:17"

    def test_tmpfs_options(self):
        options = Settings(tmpfs_size_mb=64).docker.tmpfs
        assert options == {"/tmp": "rw,exec,nosuid,size=64m"}

    def test_configuration_summary(self):
        summary = settings.get_configuration_summary()
        assert summary["max_concurrent_executions"] == settings.max_concurrent_executions
        assert "docker_timeout" in summary


class TestExecutionRequest:
    """Tests for ExecutionRequest validation."""

    def test_defaults_come_from_settings(self):
        request = ExecutionRequest(code="x", language="python")

        assert request.timeout_ms == settings.default_timeout_ms
        assert request.cpu_quota == settings.default_cpu_quota
        assert request.memory_limit_bytes == settings.default_memory_limit_bytes
        assert request.stdin == ""

    def test_camel_case_aliases(self):
        request = ExecutionRequest.model_validate(
            {
                "code": "x",
                "language": "go",
                "input": "1 2\n",
                "timeoutMs": 1500,
                "cpuQuota": 1.0,
                "memoryLimitBytes": 64 * 1024 * 1024,
            }
        )

        assert request.stdin == "1 2\n"
        assert request.timeout_ms == 1500
        assert request.cpu_quota == 1.0
        assert request.memory_limit_bytes == 64 * 1024 * 1024

    @pytest.mark.parametrize(
        "overrides",
        [
            {"timeout_ms": 0},
            {"timeout_ms": -1},
            {"cpu_quota": 0},
            {"memory_limit_bytes": 1024},
            {"timeout_ms": 10_000_000},
            {"cpu_quota": 1000.0},
            {"memory_limit_bytes": 1024 * 1024 * 1024 * 1024},
        ],
    )
    def test_invalid_limits(self, overrides):
        with pytest.raises(ValidationError):
            ExecutionRequest(code="x", language="python", **overrides)

    def test_missing_code(self):
        with pytest.raises(ValidationError):
            ExecutionRequest.model_validate({"language": "python"})


class TestExecutionResult:
    def test_serializes_camel_case(self):
        result = ExecutionResult(
            success=True, outcome="completed", output="hi", exit_code=0, execution_time_ms=12
        )

        data = result.model_dump(by_alias=True, exclude_none=True)

        assert data == {
            "success": True,
            "outcome": "completed",
            "output": "hi",
            "error": "",
            "exitCode": 0,
            "executionTimeMs": 12,
            "memoryUsedBytes": 0,
        }


class TestDockerConfig:
    """Tests for the sandbox hardening options."""

    def test_hardening_defaults(self):
        options = Settings().docker.hardening_options()

        assert options["network_mode"] == "none"
        assert options["cap_drop"] == ["ALL"]
        assert options["user"] == "65534:65534"
        assert options["tmpfs"]["/tmp"].startswith("rw,exec,nosuid")

    def test_image_default_user(self):
        options = Settings(container_user=None).docker.hardening_options()
        assert "user" not in options
