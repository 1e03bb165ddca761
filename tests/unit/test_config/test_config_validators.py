"""
Unit tests for runner configuration validation.

Tests the conversion of merged raw options into RunnerConfig and
CloudConfig, including defaults and error handling.
"""

from pathlib import Path

import pytest

from cirunner import __version__
from cirunner.config.validators import (
    default_workdir,
    random_runner_name,
    validate_cloud_config,
    validate_runner_config,
)
from cirunner.validation import ValidationError


@pytest.mark.unit
class TestRunnerConfigValidation:
    """Test cases for validate_runner_config."""

    def test_validate_runner_config_success(self, sample_options):
        """Test successful validation with explicit values."""
        config = validate_runner_config({
            **sample_options,
            "labels": "cml, gpu",
            "idle_timeout": "10 minutes",
            "single": "true",
            "workdir": "~/runners/one",
            "docker_volumes": ["/cache:/cache"],
        })

        assert config.labels == ("cml", "gpu")
        assert config.labels_csv == "cml,gpu"
        assert config.idle_timeout == 600
        assert config.single is True
        assert config.workdir == Path.home() / "runners" / "one"
        assert config.docker_volumes == ("/cache:/cache",)

    def test_log_level_is_normalized(self, sample_options):
        config = validate_runner_config({**sample_options, "log_level": "debug"})

        assert config.log_level == "DEBUG"

    def test_cml_version_defaults_to_package_version(self, sample_options):
        assert validate_runner_config(sample_options).cml_version == __version__
        assert validate_runner_config({**sample_options, "cml_version": "0.9.0"}).cml_version == "0.9.0"

    def test_tf_resource_sets_destroy_target(self, sample_options):
        """Test that a tf_resource makes teardown destroy the workdir."""
        assert not validate_runner_config(sample_options).has_destroy_target
        assert validate_runner_config({**sample_options, "tf_resource": "e30="}).has_destroy_target

    def test_tf_resource_must_be_string(self, sample_options):
        with pytest.raises(ValidationError) as exc_info:
            validate_runner_config({**sample_options, "tf_resource": {"type": "x"}})

        assert exc_info.value.field_name == "tf_resource"

    def test_invalid_runner_name(self, sample_options):
        with pytest.raises(ValidationError) as exc_info:
            validate_runner_config({**sample_options, "name": "bad name"})

        assert "name" in str(exc_info.value)

    def test_invalid_idle_timeout(self, sample_options):
        with pytest.raises(ValidationError) as exc_info:
            validate_runner_config({**sample_options, "idle_timeout": "whenever"})

        assert exc_info.value.field_name == "idle_timeout"

    def test_driver_not_inferable(self, sample_options):
        options = {**sample_options, "driver": None, "repo": "https://ci.example.com/org/repo"}

        with pytest.raises(ValidationError, match="could not be inferred"):
            validate_runner_config(options)


@pytest.mark.unit
class TestCloudConfigValidation:
    """Test cases for validate_cloud_config."""

    def test_no_cloud_means_local(self):
        assert validate_cloud_config({"cloud_region": "eu-west"}) is None

    def test_defaults(self):
        cloud = validate_cloud_config({"cloud": "gcp"})

        assert cloud.region == "us-west"
        assert cloud.spot is False
        assert cloud.spot_price == -1
        assert cloud.metadata == {}
        assert cloud.hdd_size is None

    def test_metadata_from_comma_string(self):
        cloud = validate_cloud_config({"cloud": "aws", "cloud_metadata": "team=ml,owner=ci"})

        assert cloud.metadata == {"team": "ml", "owner": "ci"}

    def test_invalid_cloud(self):
        with pytest.raises(ValidationError):
            validate_cloud_config({"cloud": "digitalocean"})

    def test_invalid_spot_price(self):
        with pytest.raises(ValidationError):
            validate_cloud_config({"cloud": "aws", "cloud_spot_price": -2})

    def test_invalid_hdd_size(self):
        with pytest.raises(ValidationError):
            validate_cloud_config({"cloud": "aws", "cloud_hdd_size": 0})


@pytest.mark.unit
class TestDefaults:

    def test_random_runner_name(self):
        names = {random_runner_name() for _ in range(20)}

        assert len(names) == 20
        for name in names:
            assert name.startswith("cirunner-")
            assert name[len("cirunner-"):].isalnum()

    def test_default_workdir(self):
        assert default_workdir("abc") == Path.home() / ".cirunner" / "abc"
