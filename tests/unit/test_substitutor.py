"""Unit tests for ImageNameSubstitutor and build_substitutor."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from image_substitutor import MalformedReference, build_substitutor
from image_substitutor import config as sub_config
from image_substitutor.audit import ImageCollector
from image_substitutor.mirror import StaticAvailabilityGate
from image_substitutor.policy import HostMode, ImageResolver, ResolverSettings
from image_substitutor.substitutor import ImageNameSubstitutor


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "MOCK_ARTIFACTORY_BEHAVIOR",
        "IMAGE_SUBSTITUTOR_FORCE_EXTERNAL",
        "IMAGE_SUBSTITUTOR_CONTAINER_HOST",
        "IMAGE_SUBSTITUTOR_KNOWN_IMAGES",
        "IMAGE_SUBSTITUTOR_CONFIG",
        "CONTAINER_HOST",
        "DOCKER_HOST",
    ):
        monkeypatch.delenv(name, raising=False)
    sub_config.reset_config()
    yield
    sub_config.reset_config()


class TestImageNameSubstitutor:
    """Test the harness-facing substitutor."""

    def test_apply_returns_canonical_name(self):
        """Test apply parses, resolves and renders the name."""
        gate = StaticAvailabilityGate(True, registry="mirror.example.com")
        substitutor = build_substitutor(gate=gate)

        assert substitutor.apply("foo/bar:1.0") == (
            "mirror.example.com/wasliberty-docker-remote/foo/bar:1.0"
        )

    def test_apply_collects_images(self):
        """Test build_substitutor wires the collector as audit callback."""
        collector = ImageCollector()
        substitutor = build_substitutor(
            gate=StaticAvailabilityGate(False), collector=collector
        )

        substitutor.apply("foo/bar:1.0")
        substitutor.apply("localhost/testcontainers/abc:latest")

        assert substitutor.collector is collector
        assert [r.original.canonical_name for r in collector.list_images()] == ["foo/bar:1.0"]

    def test_apply_malformed(self):
        """Test malformed names are rejected before resolution."""
        resolver = MagicMock()
        substitutor = build_substitutor(gate=StaticAvailabilityGate(False))
        substitutor.resolver = resolver

        with pytest.raises(MalformedReference):
            substitutor.apply("Not A Name")
        resolver.resolve.assert_not_called()

    def test_flags_from_config(self, monkeypatch):
        """Test flags are read from config at construction."""
        monkeypatch.setenv("MOCK_ARTIFACTORY_BEHAVIOR", "True")
        monkeypatch.setenv("IMAGE_SUBSTITUTOR_FORCE_EXTERNAL", "true")
        monkeypatch.setenv("IMAGE_SUBSTITUTOR_CONTAINER_HOST", "tcp://build-host:2375")

        substitutor = build_substitutor(gate=StaticAvailabilityGate(False))

        assert substitutor.mock_mirror is True
        assert substitutor.force_external is True
        assert substitutor.host_mode is HostMode.REMOTE

    def test_mocked_remote_host(self, monkeypatch):
        """Test mocked mirror names on a remote host without a configured mirror."""
        monkeypatch.setenv("MOCK_ARTIFACTORY_BEHAVIOR", "true")
        monkeypatch.setenv("IMAGE_SUBSTITUTOR_CONTAINER_HOST", "tcp://build-host:2375")
        substitutor = build_substitutor(gate=StaticAvailabilityGate(False))

        assert substitutor.apply("kyleaure/legacyimg:1.0") == (
            "mock.mirror.example.com/wasliberty-infrastructure-docker/kyleaure/legacyimg:1.0"
        )

    def test_explicit_flags(self):
        """Test explicit flags override config."""
        resolver = ImageResolver(
            StaticAvailabilityGate(True, registry="mirror.example.com"),
            settings=ResolverSettings(),
        )
        substitutor = ImageNameSubstitutor(
            resolver, host_mode=HostMode.LOCAL, force_external=True, mock_mirror=False
        )
        assert substitutor.apply("foo/bar:1.0") == "foo/bar:1.0"
        assert substitutor.description == "MirrorImageNameSubstitutor"
