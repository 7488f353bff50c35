"""
Unit Tests: Image Builder
==========================
Image naming, dockerfile selection, build arguments and job container
creation: all with a mocked Docker client.
"""
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from docker.errors import APIError, BuildError as DockerBuildError

from localci.core.errors import BuildError, InstanceCreateError
from localci.executor.image_builder import ImageBuilder, create_log_excerpt
from localci.models.build_context import BuildContext
from localci.models.job import JobDescriptor


@pytest.fixture
def context_dir(tmp_path):
    path = tmp_path / "ctx"
    path.mkdir()
    (path / "ci.sh").write_text("#!/bin/sh\n")
    (path / "Dockerfile.ci.arm64").write_text('FROM debian\nCOPY . /src\nCMD ["./ci.sh"]\n')
    return path


@pytest.fixture
def context(context_dir):
    return BuildContext(path=context_dir, prefix="local-proj:dirty", short_tag="dirty", script_name="ci.sh")


@pytest.fixture
def descriptor(context_dir):
    return JobDescriptor(dockerfile=context_dir / "Dockerfile.ci.arm64", suffix="arm64")


@pytest.fixture
def client():
    mock_client = MagicMock()
    mock_client.images.build.return_value = (MagicMock(), [{"stream": "Step 1/3: FROM debian\n"}])
    container = MagicMock()
    container.short_id = "abc123"
    mock_client.containers.create.return_value = container
    return mock_client


@pytest.fixture
def builder(make_config, client, tmp_path):
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    config = make_config(mounts=["/cache:/root/.cache:rw", "/data:/data:ro"])
    return ImageBuilder(config, client, scratch)


# ---------------------------------------------------------------------------
# 1. Image handle
# ---------------------------------------------------------------------------
class TestImageHandle:

    def test_suffixed_descriptor(self, builder, descriptor, context):
        assert str(builder.image_handle(descriptor, context)) == "alice/local-proj-arm64:dirty"

    def test_unsuffixed_descriptor(self, builder, context, tmp_path):
        default = JobDescriptor(dockerfile=tmp_path / "Dockerfile.ci", synthesized=True)
        assert str(builder.image_handle(default, context)) == "alice/local-proj:dirty"

    def test_remote_prefix_with_commit_tag(self, builder, descriptor, context_dir):
        ctx = BuildContext(
            path=context_dir, prefix="github.com-org-repo:deadbe", short_tag="deadbe", script_name="ci.sh",
        )
        assert str(builder.image_handle(descriptor, ctx)) == "alice/github.com-org-repo-arm64:deadbe"

    def test_no_tag_uses_latest(self, builder, descriptor, context_dir):
        ctx = BuildContext(path=context_dir, prefix="github.com-org-repo", script_name="ci.sh")
        assert builder.image_handle(descriptor, ctx).tag == "latest"

    def test_same_inputs_same_handle(self, make_config, client, descriptor, context, tmp_path):
        first = ImageBuilder(make_config(), client, tmp_path).image_handle(descriptor, context)
        second = ImageBuilder(make_config(), client, tmp_path).image_handle(descriptor, context)
        assert first == second


# ---------------------------------------------------------------------------
# 2. Build
# ---------------------------------------------------------------------------
class TestBuild:

    def test_build_uses_context_and_original_dockerfile(self, builder, client, descriptor, context):
        handle, instance = builder.build(descriptor, context)

        kwargs = client.images.build.call_args.kwargs
        assert kwargs["path"] == str(context.path)
        assert kwargs["dockerfile"] == "Dockerfile.ci.arm64"
        assert kwargs["tag"] == "alice/local-proj-arm64:dirty"
        assert kwargs["buildargs"] == {"UID": "1000", "GID": "1000", "CI_DRIVER": "localci"}
        assert instance.image == handle
        assert instance.descriptor == descriptor

    def test_override_rewrites_dockerfile_outside_context(self, builder, client, descriptor, context_dir):
        ctx = BuildContext(
            path=context_dir, prefix="local-proj:abc123", script_name="debug.sh", script_overridden=True,
        )
        builder.build(descriptor, ctx)

        dockerfile = Path(client.images.build.call_args.kwargs["dockerfile"])
        assert dockerfile.is_absolute()
        assert context_dir not in dockerfile.parents
        assert dockerfile.read_text().endswith('CMD ["./debug.sh"]\n')
        # the context copy is untouched
        assert (context_dir / "Dockerfile.ci.arm64").read_text().endswith('CMD ["./ci.sh"]\n')

    def test_synthesized_descriptor_passed_by_path(self, builder, client, context, tmp_path):
        default = tmp_path / "scratch" / "Dockerfile.ci"
        default.write_text("FROM debian\n")
        builder.build(JobDescriptor(dockerfile=default, synthesized=True), context)
        assert client.images.build.call_args.kwargs["dockerfile"] == str(default)

    def test_container_created_not_started(self, builder, client, descriptor, context):
        _, instance = builder.build(descriptor, context)

        kwargs = client.containers.create.call_args.kwargs
        assert kwargs["image"] == "alice/local-proj-arm64:dirty"
        assert kwargs["user"] == "1000:1000"
        assert kwargs["cap_add"] == ["SYS_PTRACE", "SYS_ADMIN"]
        assert kwargs["volumes"] == ["/cache:/root/.cache:rw", "/data:/data:ro"]
        assert kwargs["environment"]["CI_DRIVER"] == "localci"
        instance.container.start.assert_not_called()

    def test_same_host_path_mounted_twice(self, make_config, client, descriptor, context, tmp_path):
        config = make_config(mounts=["/data:/src-data:ro", "/data:/scratch:rw"])
        ImageBuilder(config, client, tmp_path).build(descriptor, context)

        volumes = client.containers.create.call_args.kwargs["volumes"]
        assert volumes == ["/data:/src-data:ro", "/data:/scratch:rw"]

    def test_build_failure(self, builder, client, descriptor, context):
        log = [{"stream": f"line {i}\n"} for i in range(50)] + [{"error": "returned a non-zero code: 2"}]
        client.images.build.side_effect = DockerBuildError("returned a non-zero code: 2", log)

        with pytest.raises(BuildError) as exc:
            builder.build(descriptor, context)
        assert "Dockerfile.ci.arm64" in str(exc.value)
        assert "line 49" in str(exc.value)
        assert "line 0\n" not in str(exc.value)
        client.containers.create.assert_not_called()

    def test_api_error_during_build(self, builder, client, descriptor, context):
        client.images.build.side_effect = APIError("daemon gone")
        with pytest.raises(BuildError, match="daemon gone"):
            builder.build(descriptor, context)

    def test_create_failure(self, builder, client, descriptor, context):
        client.containers.create.side_effect = APIError("no space left")
        with pytest.raises(InstanceCreateError, match="no space left"):
            builder.build(descriptor, context)


class TestLogExcerpt:

    def test_short_log_unchanged(self):
        assert create_log_excerpt("a\nb") == "a\nb"

    def test_long_log_keeps_tail(self):
        log = "\n".join(f"line {i}" for i in range(100))
        excerpt = create_log_excerpt(log, tail=5)
        assert excerpt.splitlines()[0] == "... (95 lines omitted) ..."
        assert excerpt.splitlines()[-1] == "line 99"
