import pytest
from pydantic import BaseModel, Field, ValidationError

from ctk.prompts import History, Prompter, describe_error
from ctk.utils.time import parse_time


def test_text_requires_an_answer(make_prompter, output):
    prompter = make_prompter("", "   ", "Work")
    assert prompter.text("Block name") == "Work"
    assert output().count("An answer is required") == 2


def test_text_default_and_allow_empty(make_prompter):
    prompter = make_prompter("", "")
    assert prompter.text("Name", default="Focus") == "Focus"
    assert prompter.text("Name", allow_empty=True) == ""


def test_text_parse_and_validate_retry(make_prompter, output):
    def no_afternoons(value):
        if value.hour >= 12:
            raise ValueError("Mornings only")

    prompter = make_prompter("soon", "3pm", "9am")
    assert prompter.text("Start", parse=parse_time, validate=no_afternoons).hour == 9
    assert "does not match format" in output()
    assert "Mornings only" in output()


def test_end_of_input_propagates(make_prompter):
    prompter = make_prompter("nope")
    with pytest.raises(EOFError):
        prompter.confirm("Continue?")


def test_integer_bounds(make_prompter, output):
    prompter = make_prompter("1000", "ten", "-1", "999")
    assert prompter.integer("Length", minimum=0, maximum=999) == 999
    text = output()
    assert "Length (0-999)" in text
    assert text.count("Value must be between 0 and 999") == 2
    assert "'ten' is not a whole number" in text


def test_integer_default(make_prompter):
    assert make_prompter("").integer("Minutes", minimum=0, maximum=99, default=5) == 5


@pytest.mark.parametrize(
    "answer, expected",
    [("y", True), ("YES", True), ("n", False), (" No ", False)],
)
def test_confirm(make_prompter, answer, expected):
    assert make_prompter(answer).confirm("Continue?") is expected


def test_confirm_reprompts_and_uses_default(make_prompter, output):
    prompter = make_prompter("maybe", "", "")
    assert prompter.confirm("Continue?", default=True) is True
    assert "Please answer yes or no" in output()
    assert prompter.confirm("Continue?", default=False) is False


def test_confirm_without_default_requires_answer(make_prompter):
    assert make_prompter("", "y").confirm("Continue?") is True


def test_select_returns_zero_based_index(make_prompter, output):
    prompter = make_prompter("0", "4", "x", "3")
    assert prompter.select("Pick", ["a", "b", "c"]) == 2
    assert output().count("is not a number between 1 and 3") == 3


def test_select_default(make_prompter):
    assert make_prompter("").select("Pick", ["a", "b"], default=1) == 1


def test_multi_select_toggles(make_prompter):
    prompter = make_prompter("2 4", "1,2", "")
    assert prompter.multi_select("Days", ["a", "b", "c", "d"]) == [0, 3]


def test_multi_select_all_and_none(make_prompter):
    assert make_prompter("all", "").multi_select("Pick", ["a", "b", "c"]) == [0, 1, 2]
    assert make_prompter("2", "none", "").multi_select("Pick", ["a", "b"]) == []
    assert make_prompter("2", "all", "").multi_select("Pick", ["a", "b", "c"]) == [0, 1, 2]


def test_multi_select_empty_confirms_nothing(make_prompter):
    assert make_prompter("").multi_select("Pick", ["a", "b"]) == []


def test_multi_select_minimum(make_prompter, output):
    prompter = make_prompter("", "3", "")
    assert prompter.multi_select("Days", ["a", "b", "c"], min_selected=1) == [2]
    assert "Select at least 1 item(s)" in output()


def test_multi_select_rejects_bad_numbers_without_partial_toggle(make_prompter, output):
    prompter = make_prompter("1 9", "1", "")
    assert prompter.multi_select("Pick", ["a", "b"]) == [0]
    assert "'9' is not a number between 1 and 2" in output()


def test_secret(make_prompter, output):
    prompter = make_prompter("", "hunter2", "")
    assert prompter.secret("Password", allow_empty=False) == "hunter2"
    assert "An answer is required" in output()
    assert prompter.secret("Password") == ""


def test_retry_reports_os_errors(make_prompter, output):
    prompter = make_prompter()
    calls = []

    def attempt():
        calls.append(1)
        if len(calls) < 3:
            raise OSError("disk on fire")
        return "ok"

    assert prompter.retry(attempt) == "ok"
    assert len(calls) == 3
    assert output().count("disk on fire") == 2


def test_retry_lets_other_errors_through(make_prompter):
    prompter = make_prompter()

    def attempt():
        raise KeyError("boom")

    with pytest.raises(KeyError):
        prompter.retry(attempt)


def test_history_recall(make_prompter):
    history = History()
    prompter = make_prompter("example.com", "test.org", "!!", "!2", "")
    answers = [prompter.text("Site", allow_empty=True, history=history) for _ in range(5)]
    assert answers == ["example.com", "test.org", "test.org", "test.org", ""]
    assert history.read(0) == "test.org"
    assert history.read(3) == "example.com"
    assert len(history) == 4


def test_history_recall_missing_entry(make_prompter, output):
    history = History()
    prompter = make_prompter("!3", "site.com")
    assert prompter.text("Site", history=history) == "site.com"
    assert "No history entry for !3" in output()


def test_history_ignores_non_recall_tokens():
    history = History()
    history.push("a")
    assert history.recall("!x") is None
    assert history.recall("plain") is None
    assert history.recall("!1") == "a"
    assert history.read(5) is None


def test_describe_error_strips_pydantic_prefix():
    class Length(BaseModel):
        value: int = Field(le=3)

    with pytest.raises(ValidationError) as exc:
        Length(value=10)
    assert "less than or equal to 3" in describe_error(exc.value)
    assert describe_error(ValueError("plain")) == "plain"
