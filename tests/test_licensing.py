"""
tests/test_licensing.py

no_permission → pending → {granted, denied}; terminal unless reset.
"""

import pytest

from corpusgate.core.exceptions import InvalidTransition, ValidationError
from corpusgate.core.models import Category, LicenseState
from corpusgate.policy.licensing import LicenseRegistry, is_terminal, validate_transition

NP, PE, GR, DE = (
    LicenseState.NO_PERMISSION,
    LicenseState.PENDING,
    LicenseState.GRANTED,
    LicenseState.DENIED,
)


class TestStateMachine:

    @pytest.mark.parametrize("current, new", [(NP, PE), (PE, GR), (PE, DE)])
    def test_legal_steps(self, current, new):
        validate_transition(current, new)

    @pytest.mark.parametrize("current, new", [
        (NP, GR), (NP, DE), (NP, NP),
        (PE, NP), (PE, PE),
        (GR, PE), (GR, DE), (GR, NP),
        (DE, GR), (DE, PE), (DE, NP),
    ])
    def test_illegal_steps(self, current, new):
        with pytest.raises(InvalidTransition) as info:
            validate_transition(current, new)
        assert info.value.details == {"from": current.value, "to": new.value}

    def test_terminal_states(self):
        assert is_terminal(GR) and is_terminal(DE)
        assert not is_terminal(NP) and not is_terminal(PE)


class TestLicenseRegistry:

    def test_defaults_to_no_permission(self):
        registry = LicenseRegistry()
        assert all(s is NP for s in registry.snapshot().values())

    def test_update_through_pending(self):
        registry = LicenseRegistry()
        assert registry.update("full_transcript", "pending") == (NP, PE)
        assert registry.update(Category.FULL_TRANSCRIPT, GR) == (PE, GR)
        assert registry.state_of(Category.FULL_TRANSCRIPT) is GR
        assert registry.state_of(Category.QUOTE_EXCERPT) is NP

    def test_skipping_pending_is_rejected(self):
        registry = LicenseRegistry()
        with pytest.raises(InvalidTransition):
            registry.update("full_transcript", "granted")
        assert registry.state_of(Category.FULL_TRANSCRIPT) is NP

    def test_reset_reopens_terminal_state(self):
        registry = LicenseRegistry({"quote_excerpt": "denied"})
        with pytest.raises(InvalidTransition):
            registry.update("quote_excerpt", "pending")
        assert registry.reset("quote_excerpt") == (DE, NP)
        assert registry.update("quote_excerpt", "pending") == (NP, PE)

    def test_unknown_values_rejected(self):
        registry = LicenseRegistry()
        with pytest.raises(ValidationError):
            registry.update("podcast", "pending")
        with pytest.raises(ValidationError):
            registry.update("full_transcript", "approved")

    def test_hook_sees_transition_before_it_applies(self):
        registry = LicenseRegistry()
        seen = []

        def hook(category, previous, current):
            seen.append((category, previous, current, registry.state_of(category)))

        registry.update("full_transcript", "pending", before_change=hook)
        assert seen == [(Category.FULL_TRANSCRIPT, NP, PE, NP)]

    def test_failing_hook_leaves_state_unchanged(self):
        registry = LicenseRegistry({"full_transcript": "pending"})

        def hook(category, previous, current):
            raise RuntimeError("audit unavailable")

        with pytest.raises(RuntimeError):
            registry.update("full_transcript", "granted", before_change=hook)
        with pytest.raises(RuntimeError):
            registry.reset("full_transcript", before_change=hook)
        assert registry.state_of(Category.FULL_TRANSCRIPT) is PE

    def test_illegal_move_never_reaches_hook(self):
        registry = LicenseRegistry()
        calls = []
        with pytest.raises(InvalidTransition):
            registry.update("full_transcript", "granted", before_change=lambda *a: calls.append(a))
        assert calls == []
