"""
Unit tests for directory_accounts.core.lifecycle

Covers resolve / idempotency / option selection / mutate / verify for both
identity strings and already-resolved handles.
"""
import pytest

from directory_accounts.core.aggregator import aggregate_account
from directory_accounts.core.directory import DirectoryConnectionError, DirectoryMutationError
from directory_accounts.core.lifecycle import (
    IdentityNotFoundError,
    LifecycleController,
    MutationFailedError,
    Transition,
    TransitionError,
    VerificationFailedError,
    disable_account,
    enable_account,
    transition,
)
from directory_accounts.core.options import DirectoryCredential, DirectoryOptions
from directory_accounts.core.records import AccountRecord
from tests.fakes import BOB_DN, NOW, make_bob

CRED = DirectoryCredential("EXAMPLE\\ops", "pw")


# ============================================================================
# Happy path
# ============================================================================

def test_disable_enabled_account_mutates_once_and_verifies(fake_client):
    result = disable_account(fake_client, "bob")

    assert result is None
    mutations = fake_client.calls_to("set_enabled")
    assert len(mutations) == 1
    assert mutations[0][1] == (BOB_DN, False)
    assert aggregate_account(fake_client, "bob").enabled is False


def test_disable_pass_thru_returns_verified_record(fake_client):
    result = transition(fake_client, Transition.DISABLE, "bob", pass_thru=True, now=NOW)

    assert isinstance(result, AccountRecord)
    assert result.enabled is False
    assert result.account_name == "bob"


def test_enable_disabled_account(fake_client):
    fake_client.add(make_bob(enabled=False))

    result = enable_account(fake_client, "EXAMPLE\\bob", pass_thru=True)

    assert result.enabled is True
    assert fake_client.calls_to("set_enabled")[0][1] == (BOB_DN, True)


def test_verification_re_aggregates_same_identity(fake_client):
    disable_account(fake_client, "EXAMPLE\\bob")

    identities = [call[1] for call in fake_client.calls_to("lookup_by_identity")]
    assert identities == ["bob", "bob"]


def test_string_targets_are_accepted(fake_client):
    LifecycleController(fake_client).transition("disable", "bob")

    assert fake_client.calls_to("set_enabled")[0][1] == (BOB_DN, False)


def test_unknown_target_is_rejected(fake_client):
    with pytest.raises(ValueError):
        transition(fake_client, "archive", "bob")


def test_terminal_state_names():
    assert Transition.DISABLE.terminal_state == "Disabled"
    assert Transition.ENABLE.terminal_state == "Enabled"


# ============================================================================
# Idempotency
# ============================================================================

def test_disable_already_disabled_performs_no_mutation(fake_client):
    fake_client.add(make_bob(enabled=False))

    result = disable_account(fake_client, "bob")

    assert result is None
    assert fake_client.calls_to("set_enabled") == []


def test_noop_pass_thru_returns_given_record(fake_client):
    fake_client.add(make_bob(enabled=False))
    record = aggregate_account(fake_client, "bob")
    fake_client.calls.clear()

    result = disable_account(fake_client, record, pass_thru=True)

    assert result is record
    assert fake_client.calls == []


def test_noop_pass_thru_returns_given_handle(fake_client):
    handle = make_bob(enabled=True)

    result = enable_account(fake_client, handle, pass_thru=True)

    assert result is handle
    assert fake_client.calls == []


# ============================================================================
# Handles skip resolution
# ============================================================================

def test_record_input_skips_initial_aggregation(fake_client):
    record = aggregate_account(fake_client, "bob")
    fake_client.calls.clear()

    disable_account(fake_client, record)

    ops = [call[0] for call in fake_client.calls]
    assert ops[0] == "set_enabled"
    assert ops[1] == "lookup_by_identity"


def test_directory_object_input_is_used_as_mutation_handle(fake_client):
    handle = fake_client.lookup_by_identity("bob")
    fake_client.calls.clear()

    result = disable_account(fake_client, handle, pass_thru=True)

    assert fake_client.calls[0] == ("set_enabled", (BOB_DN, False), {})
    assert result.enabled is False


def test_unsupported_account_type_raises_type_error(fake_client):
    with pytest.raises(TypeError):
        disable_account(fake_client, 42)


# ============================================================================
# Option selection
# ============================================================================

@pytest.mark.parametrize(
    "options, expected_kwargs",
    [
        (DirectoryOptions(server="dc02", credential=CRED), {"server": "dc02", "credential": CRED}),
        (DirectoryOptions(server="dc02"), {"server": "dc02"}),
        (DirectoryOptions(credential=CRED), {"credential": CRED}),
        (DirectoryOptions(), {}),
    ],
)
def test_mutation_uses_selected_call_shape(fake_client, options, expected_kwargs):
    disable_account(fake_client, "bob", options)

    mutation = fake_client.calls_to("set_enabled")[0]
    assert mutation[2] == expected_kwargs


def test_call_shape_does_not_depend_on_direction(fake_client):
    options = DirectoryOptions(server="dc02")
    disable_account(fake_client, "bob", options)
    enable_account(fake_client, "bob", options)

    kwargs = [call[2] for call in fake_client.calls_to("set_enabled")]
    assert kwargs == [{"server": "dc02"}, {"server": "dc02"}]


def test_controller_default_options_apply_when_none_given(fake_client):
    controller = LifecycleController(fake_client, DirectoryOptions(credential=CRED))

    controller.disable("bob")

    assert fake_client.calls_to("set_enabled")[0][2] == {"credential": CRED}


# ============================================================================
# Failures
# ============================================================================

def test_unknown_identity_raises_identity_not_found(fake_client):
    with pytest.raises(IdentityNotFoundError) as exc:
        disable_account(fake_client, "EXAMPLE\\ghost")

    assert exc.value.identity == "ghost"
    assert exc.value.status == 404
    assert fake_client.calls_to("set_enabled") == []


def test_non_existent_record_raises_identity_not_found(fake_client):
    record = aggregate_account(fake_client, "ghost")

    with pytest.raises(IdentityNotFoundError):
        disable_account(fake_client, record)


def test_mutation_error_is_propagated(fake_client):
    cause = DirectoryMutationError(BOB_DN, "insufficientAccessRights")
    fake_client.errors["set_enabled"] = cause

    with pytest.raises(MutationFailedError) as exc:
        disable_account(fake_client, "bob")

    assert exc.value.cause is cause
    assert exc.value.__cause__ is cause
    assert exc.value.status == 502
    # No verification attempted after a failed write
    assert len(fake_client.calls_to("lookup_by_identity")) == 1


def test_connection_error_during_mutation_is_mutation_failure(fake_client):
    fake_client.errors["set_enabled"] = DirectoryConnectionError("bind failed")

    with pytest.raises(MutationFailedError):
        enable_account(fake_client, make_bob(enabled=False))


def test_verification_disagreement_raises(fake_client):
    fake_client.apply_mutations = False

    with pytest.raises(VerificationFailedError) as exc:
        disable_account(fake_client, "bob", pass_thru=True)

    assert exc.value.observed_enabled is True
    assert exc.value.target is Transition.DISABLE
    assert exc.value.status == 409
    assert len(fake_client.calls_to("set_enabled")) == 1


def test_verification_fails_when_account_cannot_be_reread(fake_client):
    handle = make_bob()
    original_set_enabled = fake_client.set_enabled

    def set_then_break(h, enabled, **kwargs):
        original_set_enabled(h, enabled, **kwargs)
        fake_client.errors["lookup_by_identity"] = DirectoryConnectionError("dc unreachable")

    fake_client.set_enabled = set_then_break

    with pytest.raises(VerificationFailedError) as exc:
        disable_account(fake_client, handle)

    assert exc.value.observed_enabled is None
    assert "dc unreachable" in exc.value.message


def test_transition_errors_share_base_and_serialize(fake_client):
    with pytest.raises(TransitionError) as exc:
        disable_account(fake_client, "ghost")

    body = exc.value.to_dict()
    assert body["error"] == "IdentityNotFoundError"
    assert body["identity"] == "ghost"
    assert body["transition"] == "disable"


# ============================================================================
# Distinguished names with escapes
# ============================================================================

SMITH_DN = "CN=Smith\\, Bob,OU=Sales,OU=Corp,DC=example,DC=com"


def test_escaped_dn_identity_resolves_and_transitions(fake_client):
    fake_client.add(make_bob(distinguished_name=SMITH_DN, account_name="bsmith"))

    result = disable_account(fake_client, SMITH_DN, pass_thru=True)

    assert result.enabled is False
    assert fake_client.calls_to("lookup_by_identity")[0][1] == SMITH_DN
    assert fake_client.calls_to("set_enabled")[0][1] == (SMITH_DN, False)


def test_handle_without_account_name_is_verified_by_dn(fake_client):
    handle = fake_client.add(make_bob(distinguished_name=SMITH_DN, account_name=""))

    result = disable_account(fake_client, handle, pass_thru=True)

    assert result.enabled is False
    assert result.distinguished_name == SMITH_DN
    assert fake_client.calls_to("lookup_by_identity")[0][1] == SMITH_DN


def test_record_input_is_verified_by_its_dn(fake_client):
    record = aggregate_account(fake_client, "bob")
    fake_client.calls.clear()

    disable_account(fake_client, record)

    assert fake_client.calls_to("lookup_by_identity")[0][1] == BOB_DN
