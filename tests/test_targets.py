"""Tests for target resolution."""

import pytest

from wagate.targets import (
    ResolutionError,
    Target,
    TargetKind,
    chat_target,
    is_group_identifier,
    normalize_phone_number,
    resolve,
)


class TestNormalizePhoneNumber:
    @pytest.mark.parametrize("raw, expected", [
        ("081234567890", "6281234567890"),
        ("81234567890", "6281234567890"),
        ("6281234567890", "6281234567890"),
        ("+62 812-3456-7890", "6281234567890"),
        ("(0812) 3456 7890", "6281234567890"),
        ("1234", "621234"),
    ])
    def test_indonesian_defaults(self, raw, expected):
        assert normalize_phone_number(raw) == expected

    def test_trunk_prefix_replaced_not_kept(self):
        digits = normalize_phone_number("0811")
        assert digits == "62811"
        assert not digits.startswith("620")

    def test_other_country_code(self):
        assert normalize_phone_number("0712345678", country_code="44") == "44712345678"
        assert normalize_phone_number("44712345678", country_code="44") == "44712345678"


class TestResolve:
    def test_individual(self):
        target = resolve("081234567890")
        assert target == Target(TargetKind.INDIVIDUAL, "6281234567890")
        assert target.jid == "6281234567890@s.whatsapp.net"
        assert target.display == "6281234567890"
        assert not target.is_group

    @pytest.mark.parametrize("raw", ["120363025246125486@g.us", "6281234567890-1600000000@g.us"])
    def test_group(self, raw):
        target = resolve(raw)
        assert target.kind is TargetKind.GROUP
        assert target.identifier == raw
        assert target.jid == raw

    def test_group_is_trimmed(self):
        assert resolve("  120363025246125486@g.us \n").identifier == "120363025246125486@g.us"

    @pytest.mark.parametrize("raw", [
        "@g.us",
        "abc@g.us",
        "12@34@g.us",
        "123-@g.us",
        "12-34-56@g.us",
    ])
    def test_malformed_group_fails(self, raw):
        with pytest.raises(ResolutionError) as exc:
            resolve(raw)
        assert exc.value.raw == raw.strip()
        assert exc.value.reason == ResolutionError.INVALID_GROUP_FORMAT

    def test_group_suffix_never_becomes_individual(self):
        for raw in ["0812@g.us", "120363025246125486@g.us", "x@g.us"]:
            try:
                target = resolve(raw)
            except ResolutionError:
                continue
            assert target.kind is TargetKind.GROUP
            assert target.identifier == raw

    def test_is_group_identifier(self):
        assert is_group_identifier("123@g.us")
        assert not is_group_identifier("0812")


class TestChatTarget:
    def test_user_chat(self):
        target = chat_target("6281234567890@s.whatsapp.net")
        assert target.kind is TargetKind.INDIVIDUAL
        assert target.jid == "6281234567890@s.whatsapp.net"

    def test_lid_chat_keeps_server(self):
        assert chat_target("12345678901234@lid").jid == "12345678901234@lid"

    def test_group_chat(self):
        target = chat_target("120363025246125486@g.us")
        assert target.is_group
        assert target == resolve("120363025246125486@g.us")
