"""Tests for the status registry."""

import pytest
from nixfleet.domain.errors import HostAlreadyClaimed, InvalidTransition
from nixfleet.domain.services.status_registry import StatusRegistry
from nixfleet.domain.value_objects.deployment_status import DeploymentStatus


class TestStatusRegistry:
    def test_hosts_start_pending(self):
        registry = StatusRegistry(["a", "b"])
        assert registry.snapshot() == {
            "a": DeploymentStatus.PENDING,
            "b": DeploymentStatus.PENDING,
        }
        assert len(registry) == 2

    def test_duplicate_registration_rejected(self):
        registry = StatusRegistry(["a"])
        with pytest.raises(ValueError):
            registry.register(["a"])

    def test_full_lifecycle(self):
        registry = StatusRegistry(["a"])
        slot = registry.claim("a")
        slot.mark_deploying()
        assert registry.status("a") is DeploymentStatus.DEPLOYING
        slot.mark_success()
        assert registry.status("a") is DeploymentStatus.SUCCESS

    def test_failure_keeps_error(self):
        registry = StatusRegistry(["a"])
        slot = registry.claim("a")
        slot.mark_deploying()
        slot.mark_failed("exit 1")
        assert registry.entry("a").status is DeploymentStatus.FAILED
        assert registry.entry("a").error == "exit 1"

    def test_second_claim_rejected(self):
        registry = StatusRegistry(["a"])
        registry.claim("a")
        with pytest.raises(HostAlreadyClaimed):
            registry.claim("a")

    def test_claim_unknown_host(self):
        registry = StatusRegistry(["a"])
        with pytest.raises(KeyError):
            registry.claim("zzz")

    def test_cannot_skip_deploying(self):
        registry = StatusRegistry(["a"])
        slot = registry.claim("a")
        with pytest.raises(InvalidTransition):
            slot.mark_success()
        assert registry.status("a") is DeploymentStatus.PENDING

    def test_terminal_state_is_final(self):
        registry = StatusRegistry(["a"])
        slot = registry.claim("a")
        slot.mark_deploying()
        slot.mark_failed()
        with pytest.raises(InvalidTransition):
            slot.mark_success()
        with pytest.raises(InvalidTransition):
            slot.mark_deploying()
        assert registry.status("a") is DeploymentStatus.FAILED

    def test_counts_and_queries(self):
        registry = StatusRegistry(["a", "b", "c", "d"])
        a, b, c = registry.claim("a"), registry.claim("b"), registry.claim("c")
        for slot in (a, b, c):
            slot.mark_deploying()
        a.mark_success()
        b.mark_failed()

        counts = registry.counts_by_status()
        assert counts[DeploymentStatus.SUCCESS] == 1
        assert counts[DeploymentStatus.FAILED] == 1
        assert counts[DeploymentStatus.DEPLOYING] == 1
        assert counts[DeploymentStatus.PENDING] == 1
        assert sum(counts.values()) == 4
        assert registry.failed_hosts() == ["b"]
        assert registry.attempted_hosts() == ["a", "b", "c"]

    def test_peak_deploying(self):
        registry = StatusRegistry(["a", "b", "c"])
        a, b, c = registry.claim("a"), registry.claim("b"), registry.claim("c")
        a.mark_deploying()
        b.mark_deploying()
        a.mark_success()
        c.mark_deploying()
        assert registry.peak_deploying == 2

    def test_all_attempted_succeeded(self):
        registry = StatusRegistry(["a", "b"])
        assert registry.all_attempted_succeeded() is False
        slot = registry.claim("a")
        slot.mark_deploying()
        slot.mark_success()
        assert registry.all_attempted_succeeded() is True

    def test_annotations_do_not_change_status(self):
        registry = StatusRegistry(["a"])
        slot = registry.claim("a")
        slot.mark_deploying()
        slot.mark_success()
        slot.record_version("24.05")
        slot.record_health_check(False)
        entry = registry.entry("a")
        assert entry.status is DeploymentStatus.SUCCESS
        assert entry.version == "24.05"
        assert entry.health_check is False
