"""Tests for the scoped subscription context handle."""

import threading

import pytest

from vault_migrator.exceptions import ContextSwitchError
from vault_migrator.subscription_context import SubscriptionContext, scoped_context

from conftest import SOURCE_SUB, TARGET_SUB, FakeSubscriptionService


class TestSubscriptionContext:
    """Tests for SubscriptionContext."""

    def test_current_without_switch_raises(self):
        context = SubscriptionContext(FakeSubscriptionService())

        with pytest.raises(ContextSwitchError):
            context.current()

    def test_initial_subscription_is_current(self):
        context = SubscriptionContext(FakeSubscriptionService(), initial=SOURCE_SUB)

        assert context.current() == SOURCE_SUB

    def test_switch_records_history(self):
        context = SubscriptionContext(FakeSubscriptionService())

        context.switch_to(SOURCE_SUB)
        context.switch_to(TARGET_SUB)
        context.switch_to(SOURCE_SUB)

        assert context.history == [SOURCE_SUB, TARGET_SUB, SOURCE_SUB]
        assert context.current() == SOURCE_SUB

    def test_access_verified_once_per_subscription(self):
        service = FakeSubscriptionService()
        context = SubscriptionContext(service)

        for _ in range(3):
            context.switch_to(SOURCE_SUB)
            context.switch_to(TARGET_SUB)

        assert service.calls == [SOURCE_SUB, TARGET_SUB]

    def test_inaccessible_subscription_raises(self):
        context = SubscriptionContext(FakeSubscriptionService(accessible={SOURCE_SUB}))
        context.switch_to(SOURCE_SUB)

        with pytest.raises(ContextSwitchError) as exc_info:
            context.switch_to(TARGET_SUB)

        assert exc_info.value.context["subscription_id"] == TARGET_SUB
        assert exc_info.value.cause is not None
        # A failed switch leaves the previous subscription active
        assert context.current() == SOURCE_SUB

    def test_empty_subscription_id_raises(self):
        context = SubscriptionContext(FakeSubscriptionService())

        with pytest.raises(ContextSwitchError):
            context.switch_to("")

    def test_released_handle_rejects_use(self):
        context = SubscriptionContext(FakeSubscriptionService())
        context.switch_to(SOURCE_SUB)
        context.release()

        assert context.released
        with pytest.raises(ContextSwitchError):
            context.current()
        with pytest.raises(ContextSwitchError):
            context.switch_to(SOURCE_SUB)


class TestScopedContext:
    """Tests for the scoped_context helper."""

    def test_handle_released_on_exit(self):
        with scoped_context(FakeSubscriptionService(), label="dev") as context:
            context.switch_to(SOURCE_SUB)
            assert context.current() == SOURCE_SUB

        assert context.released

    def test_handle_released_on_error(self):
        with pytest.raises(RuntimeError):
            with scoped_context(FakeSubscriptionService()) as context:
                raise RuntimeError("boom")

        assert context.released

    def test_each_scope_gets_its_own_handle(self):
        service = FakeSubscriptionService()
        seen = {}

        def worker(name, subscription_id):
            with scoped_context(service, label=name) as context:
                for _ in range(50):
                    context.switch_to(subscription_id)
                    assert context.current() == subscription_id
                seen[name] = list(set(context.history))

        threads = [
            threading.Thread(target=worker, args=("a", SOURCE_SUB)),
            threading.Thread(target=worker, args=("b", TARGET_SUB)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert seen == {"a": [SOURCE_SUB], "b": [TARGET_SUB]}
