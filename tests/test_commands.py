"""Tests for chat command classification."""

import pytest

from wagate.commands import (
    FIXED_KEYWORDS,
    Command,
    CommandClassifier,
    Persona,
)

FIQ = Persona("fiq", "Fiq")
APIK = Persona("apik", "Apik")


@pytest.fixture
def classifier():
    return CommandClassifier(personas=[FIQ, APIK])


class TestClassify:
    @pytest.mark.parametrize("body", ["!PING", "!ping", "/ping", "/PiNg"])
    def test_case_and_prefix_invariance(self, classifier, body):
        assert classifier.classify(body).command is Command.PING

    @pytest.mark.parametrize("keyword, command", list(FIXED_KEYWORDS.items()))
    def test_every_fixed_keyword(self, classifier, keyword, command):
        assert classifier.classify(f"!{keyword}").command is command
        assert classifier.classify(f"/{keyword.upper()}").command is command

    def test_unrecognized(self, classifier):
        assert not classifier.classify("ping").recognized
        assert not classifier.classify("#ping").recognized
        assert not classifier.classify("!unknown").recognized
        assert not classifier.classify("").recognized
        assert classifier.classify("hello there").command is Command.UNRECOGNIZED

    def test_echo_argument_trimmed(self, classifier):
        result = classifier.classify("!echo  hello world  ")
        assert result.command is Command.ECHO
        assert result.argument == "hello world"

    def test_argument_keeps_case(self, classifier):
        assert classifier.classify("!ECHO Halo Dunia").argument == "Halo Dunia"

    def test_empty_and_missing_argument_equal(self, classifier):
        assert classifier.classify("!echo").argument == ""
        assert classifier.classify("!echo   ").argument == ""

    def test_no_separator_gives_empty_argument(self, classifier):
        assert classifier.classify("!echohello").argument == ""

    def test_persona(self, classifier):
        result = classifier.classify("/Fiq apa kabar?")
        assert result.command is Command.ASK
        assert result.persona == FIQ
        assert result.argument == "apa kabar?"

    def test_groups_search_argument(self, classifier):
        result = classifier.classify("!groups Braincore Community")
        assert result.command is Command.GROUPS
        assert result.argument == "Braincore Community"

    def test_custom_prefixes(self):
        classifier = CommandClassifier(prefixes=(".",))
        assert classifier.classify(".ping").command is Command.PING
        assert not classifier.classify("!ping").recognized


class TestOrdering:
    def test_longest_keyword_first(self, classifier):
        lengths = [len(k) for k in classifier.ordered_keywords]
        assert lengths == sorted(lengths, reverse=True)

    def test_shorter_persona_keyword_does_not_shadow(self):
        classifier = CommandClassifier(personas=[Persona("in", "In"), Persona("id", "Id")])
        assert classifier.classify("!info").command is Command.INFO
        assert classifier.classify("!idx").command is Command.MARKET_DATA
        assert classifier.classify("!in halo").command is Command.ASK
        assert classifier.classify("!id halo").persona.name == "Id"

    def test_longer_persona_wins_over_fixed_prefix(self):
        classifier = CommandClassifier(personas=[Persona("pinger", "Pinger")])
        assert classifier.classify("!pinger halo").command is Command.ASK
        assert classifier.classify("!ping").command is Command.PING

    def test_order_is_stable_for_equal_lengths(self):
        a = CommandClassifier(personas=[FIQ, APIK]).ordered_keywords
        b = CommandClassifier(personas=[FIQ, APIK]).ordered_keywords
        assert a == b


class TestConstruction:
    def test_no_prefixes(self):
        with pytest.raises(ValueError):
            CommandClassifier(prefixes=())

    def test_persona_collision(self):
        with pytest.raises(ValueError):
            CommandClassifier(personas=[Persona("ping", "Pinger")])

    def test_personas_listed(self, classifier):
        assert classifier.personas == [FIQ, APIK]
