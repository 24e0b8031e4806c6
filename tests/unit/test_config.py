"""Tests for SocketConfig defaults and environment overrides."""

import pytest

from unisock import DEFAULT_BACKLOG, Address, SocketConfig, Stream


class TestDefaults:
    """Test default configuration values."""

    def test_defaults(self):
        config = SocketConfig()

        assert config.backlog == DEFAULT_BACKLOG
        assert config.timeout is None
        assert config.unix_mode is None
        assert config.reuse_stale is False

    def test_empty_environment_gives_defaults(self):
        assert SocketConfig.from_env({}) == SocketConfig()

    @pytest.mark.parametrize(
        "kwargs",
        [{"backlog": 0}, {"timeout": -1.0}, {"unix_mode": 0o17777}],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            SocketConfig(**kwargs)


class TestFromEnv:
    """Test configuration via UNISOCK_* variables."""

    def test_all_variables(self):
        config = SocketConfig.from_env(
            {
                "UNISOCK_BACKLOG": "16",
                "UNISOCK_TIMEOUT": "2.5",
                "UNISOCK_UNIX_MODE": "660",
                "UNISOCK_REUSE_STALE": "yes",
            }
        )

        assert config.backlog == 16
        assert config.timeout == 2.5
        assert config.unix_mode == 0o660
        assert config.reuse_stale is True

    def test_empty_timeout_means_none(self):
        assert SocketConfig.from_env({"UNISOCK_TIMEOUT": ""}).timeout is None

    @pytest.mark.parametrize("value", ["0", "false", "No", "off", ""])
    def test_false_values(self, value):
        assert SocketConfig.from_env({"UNISOCK_REUSE_STALE": value}).reuse_stale is False

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("UNISOCK_BACKLOG", "lots"),
            ("UNISOCK_TIMEOUT", "soon"),
            ("UNISOCK_UNIX_MODE", "rw-"),
            ("UNISOCK_REUSE_STALE", "maybe"),
        ],
    )
    def test_invalid_value_names_variable(self, name, value):
        with pytest.raises(ValueError) as exc_info:
            SocketConfig.from_env({name: value})

        assert name in str(exc_info.value)

    def test_out_of_range_backlog(self):
        with pytest.raises(ValueError, match="backlog must be positive"):
            SocketConfig.from_env({"UNISOCK_BACKLOG": "-3"})

    def test_reads_os_environ(self, monkeypatch):
        monkeypatch.setenv("UNISOCK_BACKLOG", "7")

        assert SocketConfig.from_env().backlog == 7


class TestApply:
    """Test binding and connecting through a config."""

    def test_bind_and_connect_with_timeout(self):
        config = SocketConfig(timeout=3.0, backlog=4)

        with config.bind(Address.parse("127.0.0.1:0")) as listener:
            assert listener.timeout == 3.0

            with config.connect(listener.local_address()) as client:
                assert client.timeout == 3.0
                server, _ = listener.accept()
                server.close()

    def test_accepted_streams_get_timeout(self):
        config = SocketConfig(timeout=0.5)

        with config.bind(Address.parse("127.0.0.1:0")) as listener:
            with Stream.connect(listener.local_address(), timeout=5.0):
                server, _ = listener.accept()
                with server:
                    assert server.timeout == 0.5

    def test_no_timeout_leaves_accepted_streams_blocking(self):
        with SocketConfig().bind(Address.parse("127.0.0.1:0")) as listener:
            listener.set_timeout(5.0)
            with Stream.connect(listener.local_address(), timeout=5.0):
                server, _ = listener.accept()
                with server:
                    assert server.timeout is None
