"""Tests for sandbox settings."""

import dataclasses

import pytest

from eks_sandbox.config import DEFAULT_REGION, Settings


class TestClusterName:

    def test_prefix_added(self):
        assert Settings().cluster_name("demo") == "Sandbox-demo"

    def test_prefix_always_added(self):
        """No normalisation: a name that already looks prefixed gets it again."""
        assert Settings().cluster_name("Sandbox-demo") == "Sandbox-Sandbox-demo"

    def test_whitespace_stripped(self):
        assert Settings().cluster_name("  demo ") == "Sandbox-demo"

    def test_custom_prefix(self):
        assert Settings(name_prefix="Lab-").cluster_name("demo") == "Lab-demo"


class TestFromEnv:

    def test_default_region(self):
        assert Settings.from_env({}).region == DEFAULT_REGION

    def test_tool_variable_wins(self):
        env = {"EKS_SANDBOX_REGION": "us-east-1", "AWS_DEFAULT_REGION": "eu-central-1"}

        assert Settings.from_env(env).region == "us-east-1"

    def test_aws_default_region(self):
        assert Settings.from_env({"AWS_DEFAULT_REGION": "eu-central-1"}).region == "eu-central-1"


class TestOverrides:

    def test_none_values_ignored(self):
        settings = Settings().with_overrides(region=None, open_ingress=True)

        assert settings.region == DEFAULT_REGION
        assert settings.open_ingress is True

    def test_base_settings_untouched(self):
        base = Settings()
        base.with_overrides(region="us-west-2")

        assert base.region == DEFAULT_REGION

    def test_settings_are_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            Settings().region = "us-west-2"


class TestProvenanceTags:

    def test_created_by_always_present(self):
        assert Settings().provenance_tags() == {"CreatedBy": "EKS-Sandbox-Tool"}

    def test_name_tag(self):
        assert Settings().provenance_tags("EKS-IGW") == {"Name": "EKS-IGW", "CreatedBy": "EKS-Sandbox-Tool"}

    def test_extra_tags_cannot_override_provenance(self):
        settings = Settings(extra_tags={"Owner": "dev", "CreatedBy": "someone"})

        assert settings.provenance_tags("x") == {"Owner": "dev", "Name": "x", "CreatedBy": "EKS-Sandbox-Tool"}

    def test_defaults(self):
        settings = Settings()

        assert [s.az_suffix for s in settings.subnets] == ["a", "b"]
        assert settings.addons == ("coredns", "kube-proxy", "vpc-cni")
        assert settings.version_strategy == "lexicographic"
        assert settings.open_ingress is False
