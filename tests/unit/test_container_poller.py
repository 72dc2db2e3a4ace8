"""
Unit tests for container discovery.
"""
import time

import pytest

from conftest import FakeCommands, make_inspection
from dci.errors import ResolutionError
from dci.MANAGERS.container_poller import ContainerPoller, POLL_INTERVAL_SECONDS
from dci.MODELS.instance import ImageSource, PortMapping, ServiceRecord


class TestResolve:
    """Tests for ContainerPoller.resolve."""

    def test_returns_first_id(self, printer):
        """Test that an id available immediately costs a single query."""
        commands = FakeCommands(container_ids={"web": "abc123"})
        poller = ContainerPoller(commands, printer=printer, sleep=lambda s: None)
        assert poller.resolve("1234", "web", timeout=10) == "abc123"
        assert commands.called("list_container_id") == [("list_container_id", "1234", "web")]

    def test_stops_querying_after_success(self, printer):
        """Test that an id found on attempt k takes exactly k queries."""
        commands = FakeCommands(container_ids={"web": ["", "", "abc123", "other"]})
        sleeps = []
        poller = ContainerPoller(commands, printer=printer, sleep=sleeps.append)

        assert poller.resolve("1234", "web", timeout=60) == "abc123"
        assert len(commands.called("list_container_id")) == 3
        assert sleeps == [POLL_INTERVAL_SECONDS, POLL_INTERVAL_SECONDS]

    def test_default_interval_is_two_seconds(self, commands):
        """Test the fixed backoff."""
        assert ContainerPoller(commands).interval == 2.0

    def test_zero_timeout_queries_once(self, printer):
        """Test that a zero timeout still queries once before failing."""
        commands = FakeCommands()
        poller = ContainerPoller(commands, printer=printer, sleep=lambda s: None)
        with pytest.raises(ResolutionError) as exc_info:
            poller.resolve("1234", "db", timeout=0)
        assert exc_info.value.service_name == "db"
        assert "db" in str(exc_info.value)
        assert len(commands.called("list_container_id")) == 1

    def test_deadline_bounds_elapsed_time(self, printer):
        """Test that failing takes at least the timeout and less than one more interval."""
        commands = FakeCommands()
        timeout, interval = 0.5, 0.2
        poller = ContainerPoller(commands, printer=printer, interval=interval)

        started = time.monotonic()
        with pytest.raises(ResolutionError):
            poller.resolve("1234", "db", timeout=timeout)
        elapsed = time.monotonic() - started

        assert elapsed >= timeout
        assert elapsed < timeout + interval


class TestResolveService:
    """Tests for ContainerPoller.resolve_service."""

    def test_resolves_single_web_service(self, printer):
        """Test the full resolution of one service in a local Docker environment."""
        commands = FakeCommands(
            container_ids={"web": "abc123"},
            inspections={"abc123": make_inspection({"80/tcp": "32768"}, gateway="172.17.0.1")},
        )
        poller = ContainerPoller(commands, printer=printer, sleep=lambda s: None)
        service = ServiceRecord(
            service_name="web",
            image_name="nginx",
            image_source=ImageSource.DEFINED,
            ports=[PortMapping(container_port="80")],
        )

        resolved = poller.resolve_service("1234", service, timeout=10)

        assert resolved.ports == [PortMapping(host_port="32768", container_port="80", is_debug_port=False)]
        assert resolved.container_host == "172.17.0.1"
        assert resolved.container_id == "abc123"
        # The unresolved record is kept as it was
        assert service.container_id == ""
        assert service.ports[0].host_port == ""

    def test_inspection_failure_names_service(self, printer):
        """Test that an unreadable inspection is reported against the service."""
        class BrokenInspect(FakeCommands):
            def inspect(self, container_id):
                raise ResolutionError(container_id, "bad json")

        commands = BrokenInspect(container_ids={"db": "def456"})
        poller = ContainerPoller(commands, printer=printer, sleep=lambda s: None)
        service = ServiceRecord(service_name="db", image_name="postgres")

        with pytest.raises(ResolutionError) as exc_info:
            poller.resolve_service("1234", service, timeout=10)
        assert exc_info.value.service_name == "db"
        assert "def456" in exc_info.value.message
