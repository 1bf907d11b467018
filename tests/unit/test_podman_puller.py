"""Unit tests for PodmanImagePuller."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from podman.errors import APIError, NotFound

from image_substitutor.container import ContainerError
from image_substitutor.container.podman_puller import PodmanImagePuller
from image_substitutor.mirror import StaticAvailabilityGate
from image_substitutor.policy import HostMode, ImageResolver, ResolverSettings, UnsupportedPrivateRegistry
from image_substitutor.substitutor import ImageNameSubstitutor


@pytest.fixture
def substitutor():
    resolver = ImageResolver(
        StaticAvailabilityGate(True, registry="mirror.example.com"),
        settings=ResolverSettings(),
    )
    return ImageNameSubstitutor(
        resolver,
        host_mode=HostMode.LOCAL,
        force_external=False,
        mock_mirror=False,
    )


@pytest.fixture
def client_factory():
    factory = MagicMock()
    factory.return_value.images.get.side_effect = NotFound("no such image")
    return factory


def make_puller(substitutor, factory, pull_timeout=5):
    return PodmanImagePuller(
        substitutor,
        base_url="unix:///run/podman/podman.sock",
        pull_timeout=pull_timeout,
        client_factory=factory,
    )


class TestPodmanImagePuller:
    """Test pulling substituted images."""

    def test_pulls_resolved_name(self, substitutor, client_factory):
        """Test the resolved name is pulled when missing locally."""
        puller = make_puller(substitutor, client_factory)

        resolved = puller.ensure_image_available("postgres:16")

        assert resolved == "mirror.example.com/wasliberty-docker-remote/postgres:16"
        client = client_factory.return_value
        client.images.get.assert_called_once_with(resolved)
        client.images.pull.assert_called_once_with(resolved)
        client_factory.assert_called_once_with(base_url="unix:///run/podman/podman.sock")

    def test_present_image_is_not_pulled(self, substitutor, client_factory):
        """Test images already present are not pulled again."""
        client = client_factory.return_value
        client.images.get.side_effect = None
        puller = make_puller(substitutor, client_factory)

        puller.ensure_image_available("postgres:16")

        client.images.pull.assert_not_called()

    def test_pull_retries_until_success(self, substitutor, client_factory, monkeypatch):
        """Test transient pull failures are retried."""
        monkeypatch.setattr("image_substitutor.container.podman_puller.sleep", lambda s: None)
        client = client_factory.return_value
        client.images.pull.side_effect = [APIError("busy"), APIError("busy"), MagicMock()]
        puller = make_puller(substitutor, client_factory)

        puller.ensure_image_available("postgres:16")

        assert client.images.pull.call_count == 3

    def test_pull_timeout(self, substitutor, client_factory):
        """Test a pull that keeps failing raises ContainerError."""
        client = client_factory.return_value
        error = APIError("manifest unknown")
        client.images.pull.side_effect = error
        puller = make_puller(substitutor, client_factory, pull_timeout=0)

        with pytest.raises(ContainerError) as excinfo:
            puller.ensure_image_available("postgres:16")
        assert "timeout pulling image" in str(excinfo.value)
        assert excinfo.value.__cause__ is error

    def test_image_check_failure(self, substitutor, client_factory):
        """Test API errors while checking local images are wrapped."""
        client_factory.return_value.images.get.side_effect = APIError("server error")
        puller = make_puller(substitutor, client_factory)

        with pytest.raises(ContainerError):
            puller.ensure_image_available("postgres:16")

    def test_connection_failure(self, substitutor):
        """Test client construction failures are wrapped."""
        factory = MagicMock(side_effect=ConnectionError("refused"))
        puller = make_puller(substitutor, factory)

        with pytest.raises(ContainerError) as excinfo:
            puller.ensure_image_available("postgres:16")
        assert isinstance(excinfo.value.__cause__, ConnectionError)

    def test_resolution_error_propagates(self, substitutor, client_factory):
        """Test resolution failures happen before contacting podman."""
        puller = make_puller(substitutor, client_factory)

        with pytest.raises(UnsupportedPrivateRegistry):
            puller.ensure_image_available("artifactory.swg-devops.com/foo:1.0")
        client_factory.assert_not_called()

    def test_close(self, substitutor, client_factory):
        """Test close releases the client."""
        puller = make_puller(substitutor, client_factory)
        puller.ensure_image_available("postgres:16")
        puller.close()
        client_factory.return_value.close.assert_called_once()
