import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pytest

from salt_netapi.calls.models import LocalCall
from salt_netapi.calls.modules import PackageInfo
from salt_netapi.calls.results import (
    DEFAULT_RULES,
    Err,
    ErrorRule,
    FunctionNotAvailable,
    GenericError,
    ModuleNotSupported,
    Ok,
    ResultDecoder,
    SaltError,
)

"""
Result Envelope Decoder Tests.
Verifies the two phase decoding: structural validation first, then
classification of the raw fragment when validation fails.
"""


@dataclass(frozen=True)
class Job:
    """Mirrors a small typed return value."""
    jid: str
    minions: List[str]
    user: Optional[str] = None


@dataclass(frozen=True)
class MinionOffline(SaltError):
    minion: str


@pytest.fixture
def decoder():
    return ResultDecoder()


@pytest.mark.parametrize("fragment, return_type", [
    (True, bool),
    ("total 0", str),
    (42, int),
    ({"vim": ["9.0"]}, Dict[str, List[str]]),
    ([1, 2, 3], List[int]),
    ({"anything": [None, 1.5]}, Any),
])
def test_conforming_fragment_decodes_to_ok_with_equal_value(decoder, fragment, return_type):
    assert decoder.decode(fragment, return_type) == Ok(fragment)


def test_dataclass_fragment_decodes_field_for_field(decoder):
    result = decoder.decode({"jid": "123", "minions": ["m1"], "user": "root"}, Job)

    assert result == Ok(Job(jid="123", minions=["m1"], user="root"))


def test_nested_typed_value(decoder):
    call = LocalCall("pkg.info_installed", arg=["vim"], return_type=Dict[str, PackageInfo])

    result = decoder.decode({"vim": {"version": "9.0", "architecture": "x86_64"}}, call.return_type)

    assert isinstance(result, Ok)
    assert result.value["vim"] == PackageInfo(version="9.0", architecture="x86_64")


@pytest.mark.parametrize("return_type", [bool, int, Dict[str, str], List[str], Job])
def test_function_not_available_string(decoder, return_type):
    result = decoder.decode("'cmd.run' is not available.", return_type)

    assert result == Err(FunctionNotAvailable("cmd.run"))


def test_module_not_supported_string(decoder):
    result = decoder.decode("'foo' __virtual__ returned False", bool)

    assert result == Err(ModuleNotSupported("foo"))


def test_error_patterns_are_found_inside_longer_messages(decoder):
    result = decoder.decode("ERROR: 'pkg.list_pkgs' is not available.", Dict[str, List[str]])

    assert result == Err(FunctionNotAvailable("pkg.list_pkgs"))


def test_error_string_is_a_valid_value_when_a_string_is_expected(decoder):
    # Pattern matching only applies once structural decoding failed
    assert decoder.decode("'cmd.run' is not available.", str) == Ok("'cmd.run' is not available.")


def test_function_rule_wins_when_both_patterns_match(decoder):
    fragment = "'a.b' is not available. 'c' __virtual__ returned False"

    assert decoder.decode(fragment, bool) == Err(FunctionNotAvailable("a.b"))


def test_object_missing_required_field_is_generic_error_keeping_fragment(decoder):
    fragment = {"minions": ["m1"]}

    result = decoder.decode(fragment, Job)

    assert isinstance(result, Err)
    assert isinstance(result.error, GenericError)
    assert result.error.payload is fragment
    assert isinstance(result.error.cause, Exception)


def test_non_string_failure_skips_pattern_rules(decoder, mocker):
    rule = ErrorRule(re.compile("(.*)"), FunctionNotAvailable)
    spy = mocker.spy(ErrorRule, "apply")
    custom = ResultDecoder([rule])

    result = custom.decode(["'x' is not available."], bool)

    assert isinstance(result.error, GenericError)
    spy.assert_not_called()


def test_unmatched_string_is_generic_error(decoder):
    result = decoder.decode("Minion did not return. [No response]", bool)

    assert isinstance(result.error, GenericError)
    assert result.error.payload == "Minion did not return. [No response]"


@pytest.mark.parametrize("fragment", [None, 3.5, [], {}, "text", b"bytes", object()])
@pytest.mark.parametrize("return_type", [bool, Job, Dict[str, int], object(), "not a type"])
def test_decode_never_raises(decoder, fragment, return_type):
    result = decoder.decode(fragment, return_type)

    assert isinstance(result, (Ok, Err))


def test_with_rule_extends_without_changing_existing_classifications(decoder):
    offline = ErrorRule(re.compile(r"Minion (\S+) did not return"), MinionOffline)
    extended = decoder.with_rule(offline)

    assert extended.rules == DEFAULT_RULES + (offline,)
    assert decoder.rules == DEFAULT_RULES
    assert extended.decode("Minion web1 did not return", bool) == Err(MinionOffline("web1"))
    assert extended.decode("'foo' __virtual__ returned False", bool) == Err(ModuleNotSupported("foo"))


def test_decode_all_keeps_minion_ids(decoder):
    results = decoder.decode_all(
        {"m1": True, "m2": "'test.ping' is not available.", "m3": {"oops": 1}},
        bool,
    )

    assert results["m1"] == Ok(True)
    assert results["m2"] == Err(FunctionNotAvailable("test.ping"))
    assert isinstance(results["m3"].error, GenericError)
    assert set(results) == {"m1", "m2", "m3"}
