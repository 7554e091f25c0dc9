import pytest

from playground_sandbox import DockerRuntime


def test_docker_context_conflicts_with_docker_host() -> None:
    with pytest.raises(ValueError, match="either docker_context"):
        DockerRuntime(docker_context="remote", docker_host="ssh://user@host")


def test_ssh_user_requires_ssh_host() -> None:
    with pytest.raises(ValueError, match="ssh_user requires ssh_host"):
        DockerRuntime(ssh_user="alice")


def test_ssh_key_path_requires_ssh_host() -> None:
    with pytest.raises(ValueError, match="ssh_key_path requires ssh_host"):
        DockerRuntime(ssh_key_path="/home/alice/.ssh/id_ed25519")


def test_ssh_env_is_constructed() -> None:
    runtime = DockerRuntime(ssh_host="example.com", ssh_user="alice", ssh_port=2222)
    env = runtime._docker_env()  # noqa: SLF001 - validating internal connection config
    assert env["DOCKER_HOST"] == "ssh://alice@example.com"
    assert "-p 2222" in env["DOCKER_SSH_COMMAND"]


def test_docker_host_is_exported() -> None:
    runtime = DockerRuntime(docker_host="tcp://build-farm:2376")
    env = runtime._docker_env()  # noqa: SLF001
    assert env["DOCKER_HOST"] == "tcp://build-farm:2376"
