"""Unit tests for image reference parsing."""

from __future__ import annotations

import pytest

from image_substitutor.reference import ImageReference, MalformedReference, parse_image_reference

DIGEST = "sha256:" + "c3" * 32


class TestParseImageReference:
    """Test parse_image_reference."""

    def test_repository_only(self):
        """Test a bare repository gets the implied latest tag."""
        ref = parse_image_reference("postgres")
        assert ref.registry is None
        assert ref.repository == "postgres"
        assert ref.tag is None
        assert ref.version == "latest"
        assert ref.canonical_name == "postgres:latest"

    def test_namespace_and_tag(self):
        """Test namespace/name:tag."""
        ref = parse_image_reference("kyleaure/legacyimg:1.0")
        assert ref.registry is None
        assert ref.repository == "kyleaure/legacyimg"
        assert ref.namespace == "kyleaure"
        assert ref.tag == "1.0"

    @pytest.mark.parametrize(
        "image,registry,repository",
        [
            ("myregistry.example.com/foo:1.0", "myregistry.example.com", "foo"),
            ("localhost/testcontainers/ryuk:latest", "localhost", "testcontainers/ryuk"),
            ("localhost:5000/app", "localhost:5000", "app"),
            ("registry:5000/team/app:2", "registry:5000", "team/app"),
        ],
    )
    def test_registry_detection(self, image, registry, repository):
        """Test the first component is a registry only when it looks like a host."""
        ref = parse_image_reference(image)
        assert ref.registry == registry
        assert ref.repository == repository

    def test_digest(self):
        """Test digest references."""
        ref = parse_image_reference(f"foo/bar@{DIGEST}")
        assert ref.digest == DIGEST
        assert ref.version == DIGEST
        assert ref.canonical_name == f"foo/bar@{DIGEST}"

    def test_committed_image_name(self):
        """Test 'sha256:<hex>' parses with the placeholder repository."""
        ref = parse_image_reference("sha256:" + "ab" * 32)
        assert ref.repository == "sha256"

    def test_str_is_canonical(self):
        """Test str() returns the canonical name."""
        assert str(parse_image_reference("quay.io/org/app:3")) == "quay.io/org/app:3"

    @pytest.mark.parametrize(
        "image",
        [
            "",
            " foo",
            "foo bar",
            "Foo/bar",
            "foo//bar",
            "/foo",
            "foo:",
            "foo:-bad",
            "foo@sha256:xyz",
            "foo@",
        ],
    )
    def test_malformed(self, image):
        """Test malformed references are rejected."""
        with pytest.raises(MalformedReference):
            parse_image_reference(image)

    def test_malformed_is_value_error(self):
        """Test MalformedReference is a ValueError."""
        assert issubclass(MalformedReference, ValueError)


class TestImageReference:
    """Test ImageReference value behavior."""

    def test_empty_repository_rejected(self):
        """Test repository must not be empty."""
        with pytest.raises(MalformedReference):
            ImageReference(repository="")

    def test_with_registry(self):
        """Test with_registry returns a new reference."""
        ref = parse_image_reference("foo/bar:1")
        swapped = ref.with_registry("mirror.example.com")
        assert swapped.registry == "mirror.example.com"
        assert ref.registry is None
        assert swapped.with_registry("").registry is None

    def test_equality(self):
        """Test references compare by value."""
        assert parse_image_reference("foo/bar:1") == ImageReference(repository="foo/bar", tag="1")
