"""
Unit tests for the pre-flight checks.
"""

import os
import stat

import pytest

from cirunner.models.runtime import RunnerInfo
from cirunner.provisioning.preflight import WORKDIR_MODE, run_preflight
from cirunner.validation import ConfigError

from conftest import FakePlatform


def runner(name="other", labels=("cml",), online=True, busy=False):
    return RunnerInfo(id=name, name=name, labels=list(labels), online=online, busy=busy)


@pytest.mark.unit
class TestRunPreflight:
    """Test cases for run_preflight."""

    @pytest.mark.asyncio
    async def test_fresh_launch_prepares_workdir(self, make_config, fake_platform):
        config = make_config()

        assert await run_preflight(config, fake_platform)

        assert fake_platform.calls[:2] == ["repo_token_check", "list_runners"]
        assert config.workdir.is_dir()
        assert stat.S_IMODE(os.stat(config.workdir).st_mode) == WORKDIR_MODE

    @pytest.mark.asyncio
    async def test_name_collision_is_config_error(self, make_config):
        platform = FakePlatform(runners=[runner("cirunner-test")])

        with pytest.raises(ConfigError, match="already in use"):
            await run_preflight(make_config(), platform)

    @pytest.mark.asyncio
    async def test_reuse_with_same_name_skips_launch(self, make_config):
        platform = FakePlatform(runners=[runner("cirunner-test", online=False)])
        config = make_config(reuse=True)

        assert not await run_preflight(config, platform)
        assert not config.workdir.exists()

    @pytest.mark.asyncio
    async def test_reuse_with_online_label_match_skips_launch(self, make_config):
        platform = FakePlatform(runners=[runner("gpu-box", labels=("cml", "gpu"))])

        assert not await run_preflight(make_config(reuse=True, labels=("cml",)), platform)

    @pytest.mark.asyncio
    async def test_reuse_ignores_offline_runners(self, make_config):
        platform = FakePlatform(runners=[runner("gpu-box", online=False)])

        assert await run_preflight(make_config(reuse=True), platform)

    @pytest.mark.asyncio
    async def test_reuse_idle_with_idle_runner_skips_launch(self, make_config):
        platform = FakePlatform(runners=[runner("busy", busy=True), runner("idle")])

        assert not await run_preflight(make_config(reuse_idle=True), platform)

    @pytest.mark.asyncio
    async def test_reuse_idle_with_only_busy_runners_launches(self, make_config):
        platform = FakePlatform(runners=[runner("busy", busy=True)])

        assert await run_preflight(make_config(reuse_idle=True), platform)

    @pytest.mark.asyncio
    async def test_reuse_idle_unsupported_platform(self, make_config):
        platform = FakePlatform(supports_reuse_idle=False)

        with pytest.raises(ConfigError, match="reuse_idle is unsupported by bitbucket"):
            await run_preflight(make_config(driver="bitbucket", reuse_idle=True), platform)

    @pytest.mark.asyncio
    async def test_docker_volumes_warning_outside_gitlab(self, make_config, fake_platform, caplog):
        await run_preflight(make_config(docker_volumes=("/cache:/cache",)), fake_platform)

        assert "docker_volumes is only supported in gitlab" in caplog.text

    @pytest.mark.asyncio
    async def test_github_timeout_warning(self, make_config, fake_platform, caplog):
        await run_preflight(make_config(driver="github"), fake_platform)

        assert "35 days" in caplog.text

    @pytest.mark.asyncio
    async def test_no_github_warning_for_gitlab(self, make_config, fake_platform, caplog):
        await run_preflight(make_config(driver="gitlab"), fake_platform)

        assert "35 days" not in caplog.text
