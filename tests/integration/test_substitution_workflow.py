"""End-to-end substitution workflow with a mocked Podman service."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from podman.errors import APIError, NotFound

from image_substitutor import build_substitutor
from image_substitutor import config as sub_config
from image_substitutor.audit import UnverifiedImagesError
from image_substitutor.container.podman_puller import PodmanImagePuller
from image_substitutor.mirror.podman_gate import PodmanAvailabilityGate
from image_substitutor.policy import MirrorRequiredButUnavailable


@pytest.fixture(autouse=True)
def harness_env(monkeypatch):
    """Environment of a build running against a configured mirror."""
    for name in ("MOCK_ARTIFACTORY_BEHAVIOR", "IMAGE_SUBSTITUTOR_FORCE_EXTERNAL",
                 "IMAGE_SUBSTITUTOR_CONFIG", "CONTAINER_HOST", "DOCKER_HOST"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("IMAGE_SUBSTITUTOR_MIRROR_REGISTRY", "mirror.example.com")
    monkeypatch.setenv("IMAGE_SUBSTITUTOR_MIRROR_USER", "builder")
    monkeypatch.setenv("IMAGE_SUBSTITUTOR_MIRROR_TOKEN", "secret")
    monkeypatch.setenv("IMAGE_SUBSTITUTOR_CONTAINER_HOST", "unix:///run/podman/podman.sock")
    monkeypatch.setenv("IMAGE_SUBSTITUTOR_KNOWN_IMAGES", "postgres:16,kyleaure/legacyimg:1.0")
    sub_config.reset_config()
    yield
    sub_config.reset_config()


@pytest.fixture
def podman():
    """Podman client factory shared by the gate and the puller."""
    factory = MagicMock()
    client = factory.return_value
    client.__enter__.return_value = client
    client.ping.return_value = True
    client.images.get.side_effect = NotFound("no such image")
    return factory


class TestSubstitutionWorkflow:
    """Test gate, resolver, collector and puller together."""

    def test_pull_through_mirror(self, podman):
        """Test images are pulled through the mirror and verified afterwards."""
        substitutor = build_substitutor(gate=PodmanAvailabilityGate(client_factory=podman))
        puller = PodmanImagePuller(substitutor, client_factory=podman)

        assert puller.ensure_image_available("postgres:16") == (
            "mirror.example.com/wasliberty-docker-remote/postgres:16"
        )
        assert puller.ensure_image_available("kyleaure/legacyimg:1.0") == (
            "mirror.example.com/wasliberty-infrastructure-docker/kyleaure/legacyimg:1.0"
        )
        assert puller.ensure_image_available("localhost/testcontainers/abc:latest") == (
            "localhost/testcontainers/abc:latest"
        )

        client = podman.return_value
        client.login.assert_called_once_with(
            username="builder", password="secret", registry="mirror.example.com"
        )
        assert client.images.pull.call_count == 3
        substitutor.collector.verify()

    def test_unknown_image_fails_verification(self, podman):
        """Test verification catches images outside the known list."""
        substitutor = build_substitutor(gate=PodmanAvailabilityGate(client_factory=podman))

        substitutor.apply("redis:7")

        with pytest.raises(UnverifiedImagesError):
            substitutor.collector.verify()

    def test_remote_host_without_mirror(self, podman, monkeypatch):
        """Test a remote host with a failed login is fatal."""
        monkeypatch.setenv("IMAGE_SUBSTITUTOR_CONTAINER_HOST", "tcp://build-host:2375")
        podman.return_value.login.side_effect = APIError("unauthorized")
        substitutor = build_substitutor(gate=PodmanAvailabilityGate(client_factory=podman))

        with pytest.raises(MirrorRequiredButUnavailable) as excinfo:
            substitutor.apply("foo/bar:1.0")

        assert "login to mirror registry mirror.example.com failed" in str(excinfo.value)
        assert substitutor.collector.list_images() == []

    def test_local_host_without_mirror_keeps_names(self, podman):
        """Test a local host falls back to public names when login fails."""
        podman.return_value.login.side_effect = APIError("unauthorized")
        substitutor = build_substitutor(gate=PodmanAvailabilityGate(client_factory=podman))

        assert substitutor.apply("postgres:16") == "postgres:16"
