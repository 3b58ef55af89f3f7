"""
Tests for the Docker Compose orchestrator.

run_async is patched; the fake dispatches on the compose subcommand.
"""

import asyncio
import json
import pytest
from unittest.mock import AsyncMock, patch

from supapanel.services.orchestration.base import DockerStatus
from supapanel.services.orchestration.docker import (
    DockerComposeOrchestrator,
    format_env_value,
    render_env_file,
    parse_compose_ps,
)
from supapanel.utils.async_subprocess import SubprocessResult

RUN_ASYNC = "supapanel.services.orchestration.docker.run_async"

SERVICES = ["kong", "db", "studio"]


def ps_line(service, state):
    return json.dumps({"Name": f"demo-{service}-1", "Service": service, "State": state})


def fake_compose(ps_states=None, fail=None, services=SERVICES, logs="kong | ready\n"):
    """Build a run_async stand-in answering ps / config / logs / up / stop / down."""
    ps_states = ps_states or {}

    async def _run(cmd, timeout=None, cwd=None, env=None, check=False):
        sub = cmd[4]
        if fail and sub == fail:
            return SubprocessResult(1, "", "Cannot connect to the Docker daemon", cmd)
        if sub == "ps":
            output = "\n".join(ps_line(s, st) for s, st in ps_states.items())
            return SubprocessResult(0, output, "", cmd)
        if sub == "config":
            return SubprocessResult(0, "\n".join(services) + "\n", "", cmd)
        if sub == "logs":
            return SubprocessResult(0, logs, "", cmd)
        return SubprocessResult(0, "", "", cmd)

    return AsyncMock(side_effect=_run)


@pytest.fixture
def template_dir(tmp_path):
    path = tmp_path / "core" / "docker"
    path.mkdir(parents=True)
    (path / "docker-compose.yml").write_text("services:\n  kong:\n    image: kong\n")
    return path


@pytest.fixture
def orchestrator(projects_dir, template_dir):
    return DockerComposeOrchestrator(
        projects_path=str(projects_dir),
        template_path=str(template_dir),
        query_timeout=5,
        command_timeout=5,
    )


@pytest.fixture
def deployed(projects_dir):
    """A project directory as left behind by a previous deploy."""
    path = projects_dir / "demo"
    path.mkdir()
    (path / "docker-compose.yml").write_text("services: {}\n")
    return path


@pytest.mark.unit
class TestEnvFile:

    def test_plain_values_unquoted(self):
        assert format_env_value("8000") == "8000"
        assert format_env_value("") == ""

    def test_special_values_quoted(self):
        assert format_env_value("has space") == '"has space"'
        assert format_env_value('say "hi"') == '"say \\"hi\\""'
        assert format_env_value("a#b") == '"a#b"'

    def test_sorted_with_header(self):
        content = render_env_file({"B": "2", "A": "1"}, header="demo")
        assert content == "# demo\nA=1\nB=2\n"

    def test_parse_ps_array_and_lines(self):
        array = json.dumps([{"Service": "kong", "State": "running"}])
        lines = ps_line("kong", "running") + "\n" + ps_line("db", "exited")

        assert parse_compose_ps(array) == [{"Service": "kong", "State": "running"}]
        assert [c["Service"] for c in parse_compose_ps(lines)] == ["kong", "db"]
        assert parse_compose_ps("  \n") == []


@pytest.mark.unit
@pytest.mark.asyncio
class TestStatus:

    async def test_never_deployed(self, orchestrator):
        with patch(RUN_ASYNC, fake_compose()) as run:
            status = await orchestrator.get_status("demo")

        assert status['status'] == DockerStatus.NOT_DEPLOYED
        assert status['running_count'] == 0
        run.assert_not_called()

    async def test_all_running(self, orchestrator, deployed):
        states = {s: "running" for s in SERVICES}
        with patch(RUN_ASYNC, fake_compose(states)):
            status = await orchestrator.get_status("demo")

        assert status['status'] == DockerStatus.RUNNING
        assert status['running_count'] == 3
        assert status['total_count'] == 3
        assert status['containers']["studio"] == "running"

    async def test_partial(self, orchestrator, deployed):
        states = {"kong": "running", "db": "running", "studio": "exited"}
        with patch(RUN_ASYNC, fake_compose(states)):
            status = await orchestrator.get_status("demo")

        assert status['status'] == DockerStatus.PARTIAL
        assert (status['running_count'], status['total_count']) == (2, 3)

    async def test_all_stopped(self, orchestrator, deployed):
        states = {s: "exited" for s in SERVICES}
        with patch(RUN_ASYNC, fake_compose(states)):
            status = await orchestrator.get_status("demo")

        assert status['status'] == DockerStatus.STOPPED

    async def test_no_containers(self, orchestrator, deployed):
        with patch(RUN_ASYNC, fake_compose({})):
            status = await orchestrator.get_status("demo")

        assert status['status'] == DockerStatus.NOT_DEPLOYED

    async def test_listing_failure_is_error(self, orchestrator, deployed):
        with patch(RUN_ASYNC, fake_compose(fail="ps")):
            status = await orchestrator.get_status("demo")

        assert status['status'] == DockerStatus.ERROR
        assert "Docker daemon" in status['error']

    async def test_timeout_is_error(self, orchestrator, deployed):
        with patch(RUN_ASYNC, AsyncMock(side_effect=asyncio.TimeoutError())):
            status = await orchestrator.get_status("demo")

        assert status['status'] == DockerStatus.ERROR
        assert "timed out" in status['error']

    async def test_commands_are_namespaced_by_slug(self, orchestrator, deployed):
        with patch(RUN_ASYNC, fake_compose({"kong": "running"})) as run:
            await orchestrator.get_status("demo")

        cmd = run.call_args_list[0].args[0]
        assert cmd[:4] == ["docker", "compose", "-p", "demo"]
        assert run.call_args_list[0].kwargs["cwd"] == str(deployed)


@pytest.mark.unit
@pytest.mark.asyncio
class TestLifecycle:

    async def test_deploy_provisions_from_template(self, orchestrator, projects_dir):
        with patch(RUN_ASYNC, fake_compose()) as run:
            result = await orchestrator.deploy("demo", {"KONG_HTTP_PORT": "8000", "JWT_SECRET": "s3cret"})

        assert result.success
        project_dir = projects_dir / "demo"
        assert (project_dir / "docker-compose.yml").exists()
        env_file = (project_dir / ".env").read_text()
        assert "KONG_HTTP_PORT=8000\n" in env_file
        assert "JWT_SECRET=s3cret\n" in env_file
        assert run.call_args.args[0] == ["docker", "compose", "-p", "demo", "up", "-d", "--remove-orphans"]

    async def test_deploy_without_compose_definition(self, projects_dir):
        orchestrator = DockerComposeOrchestrator(projects_path=str(projects_dir), template_path=None)
        with patch(RUN_ASYNC, fake_compose()) as run:
            result = await orchestrator.deploy("demo", {})

        assert not result.success
        assert "No compose definition" in result.error
        run.assert_not_called()

    async def test_deploy_failure_reports_stderr(self, orchestrator):
        with patch(RUN_ASYNC, fake_compose(fail="up")):
            result = await orchestrator.deploy("demo", {})

        assert not result.success
        assert result.error == "Cannot connect to the Docker daemon"

    async def test_tool_not_installed(self, orchestrator):
        error = RuntimeError("Subprocess execution failed: [Errno 2] No such file or directory: 'docker'")
        with patch(RUN_ASYNC, AsyncMock(side_effect=error)):
            result = await orchestrator.deploy("demo", {})

        assert not result.success
        assert "No such file" in result.error

    async def test_stop(self, orchestrator, deployed):
        with patch(RUN_ASYNC, fake_compose()) as run:
            result = await orchestrator.stop("demo")

        assert result.success
        assert run.call_args.args[0][4:] == ["stop"]

    async def test_teardown_removes_volumes(self, orchestrator, deployed):
        with patch(RUN_ASYNC, fake_compose()) as run:
            result = await orchestrator.teardown("demo")

        assert result.success
        assert run.call_args.args[0][4:] == ["down", "--volumes", "--remove-orphans"]

    async def test_teardown_of_never_deployed_project(self, orchestrator):
        with patch(RUN_ASYNC, fake_compose()) as run:
            result = await orchestrator.teardown("demo")

        assert result.success
        run.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
class TestObservation:

    async def test_logs(self, orchestrator, deployed):
        with patch(RUN_ASYNC, fake_compose()) as run:
            result = await orchestrator.get_logs("demo", 50)

        assert result == {'success': True, 'logs': "kong | ready\n"}
        assert run.call_args.args[0][4:] == ["logs", "--no-color", "--tail", "50"]

    async def test_logs_capped_across_containers(self, orchestrator, deployed):
        # --tail 2 per container: four lines come back for two containers
        interleaved = "kong | a\ndb | b\nkong | c\ndb | d\n"
        with patch(RUN_ASYNC, fake_compose(logs=interleaved)):
            result = await orchestrator.get_logs("demo", 2)

        assert result['logs'] == "kong | c\ndb | d\n"

    async def test_logs_failure(self, orchestrator, deployed):
        with patch(RUN_ASYNC, fake_compose(fail="logs")):
            result = await orchestrator.get_logs("demo")

        assert result['success'] is False
        assert result['error']

    async def test_studio_url_with_verified_domain(self, orchestrator, deployed):
        with patch(RUN_ASYNC, fake_compose({"studio": "running"})):
            url = await orchestrator.get_studio_url(
                "demo", {}, studio_domain="studio.demo.test", studio_domain_verified=True
            )
        assert url == "https://studio.demo.test"

    async def test_studio_url_falls_back_to_port(self, orchestrator, deployed):
        with patch(RUN_ASYNC, fake_compose({"studio": "running"})):
            url = await orchestrator.get_studio_url(
                "demo", {"STUDIO_PORT": "3010"}, studio_domain="studio.demo.test"
            )
        assert url == "http://localhost:3010"

    async def test_no_studio_url_when_studio_down(self, orchestrator, deployed):
        with patch(RUN_ASYNC, fake_compose({"studio": "exited"})):
            assert await orchestrator.get_studio_url("demo", {}) is None
