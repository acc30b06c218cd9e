from __future__ import annotations

import pytest

from appup_gen.terms import Atom, Placeholder, TermSyntaxError, leading_comments, parse_terms


def test_parses_nested_literals_and_skips_comments() -> None:
    text = "\n".join(
        [
            "% header comment",
            "{application, demo, % trailing comment",
            ' [{vsn, "1.2.0"}, {modules, [a, b]}, {env, #{key => <<"v">>}},',
            "  {numbers, [-3, 16#ff, 2.5e3, $a]}, {'Quoted', \"x\\ty\"}]}.",
        ]
    )
    [term] = parse_terms(text)

    assert term[0] == Atom("application")
    assert term[1] == Atom("demo")
    props = dict((item[0].name, item[1]) for item in term[2])
    assert props["vsn"] == "1.2.0"
    assert props["modules"] == [Atom("a"), Atom("b")]
    assert props["env"] == {Atom("key"): b"v"}
    assert props["numbers"] == [-3, 255, 2500.0, 97]
    assert props["Quoted"] == "x\ty"


def test_parses_multiple_terms_and_concatenates_adjacent_strings() -> None:
    terms = parse_terms('{a, "one" "two"}.\n[].\n')
    assert terms == [(Atom("a"), "onetwo"), []]


def test_placeholder_is_kept_symbolic() -> None:
    [term] = parse_terms('{VSN, [], []}.', placeholders=("VSN",))
    assert term == (Placeholder("VSN"), [], [])


def test_unbound_variable_is_rejected_with_position() -> None:
    with pytest.raises(TermSyntaxError) as error:
        parse_terms("{VSN,\n Other}.", placeholders=("VSN",))
    assert error.value.line == 2
    assert error.value.column == 2
    assert "unbound variable Other" in str(error.value)


@pytest.mark.parametrize(
    "text",
    [
        "{a, b}",
        "{a, b",
        "[a | b].",
        "{a, fun() -> ok end}.",
        "lists:seq(1, 3).",
        '"unterminated.',
    ],
)
def test_expressions_and_malformed_input_are_rejected(text: str) -> None:
    with pytest.raises(TermSyntaxError):
        parse_terms(text)


def test_leading_comments_stop_at_first_term() -> None:
    text = "%% generated\n\n% keep me\n{VSN, [], []}.\n% not a header\n"
    assert leading_comments(text) == ("%% generated", "% keep me")
