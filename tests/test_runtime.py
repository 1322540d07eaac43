## awwforth — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import time
import threading

import pytest

from awwforth.runtime import Engine, EngineConfig, LineResult, parse_number
from awwforth.types import CompiledDefinition, NativeProcedure
from awwforth.errors import (CircularDefinition, UnbalancedControlStructure, DuplicateRedefinition, WordNotFound,
                             UnknownControlCode, StackUnderflow, EngineSuspended, ContinuationSpent,
                             UnterminatedString, EmptyName, InvalidAction)


class RecordingScheduler:
    def __init__(self):
        self.calls = []

    def __call__(self, delay, callback):
        self.calls.append((delay, callback))

    def fire(self):
        _, callback = self.calls.pop(0)
        return callback()


@pytest.fixture
def scheduler():
    return RecordingScheduler()

@pytest.fixture
def engine(scheduler):
    return Engine(EngineConfig(scheduler=scheduler))


## LINES
def test_line_result_shape(engine):
    result = engine.read_line("3 4 +")
    assert isinstance(result, LineResult)
    assert result.line == "3 4 +"
    assert result.output == " ok"
    assert result.stack == [7]
    assert result.parsed_tokens == ["3", "4", "+"]
    assert result.paused is False and result.error is None
    assert "dup" in result.dictionary
    assert {b['name'] for b in result.memory['blocks']} >= {"graphics", "last-key"}

def test_read_lines_is_sequential(engine):
    results = engine.read_lines(["1", "2", "+ ."])
    assert [r.output for r in results] == [" ok", " ok", "3  ok"]

def test_counted_loop_prints_ascending(engine):
    result = engine.read_line(": f 10 0 do i . loop ; f")
    assert result.output == "0 1 2 3 4 5 6 7 8 9  ok"

def test_conditional_definition(engine):
    engine.read_line(": sign dup 0< if drop -1 else drop 1 then ;")
    assert engine.read_line("-5 sign .").output == "-1  ok"
    assert engine.read_line("5 sign .").output == "1  ok"

def test_definitions_may_span_lines(engine):
    first = engine.read_line(": square")
    assert first.output == ""
    assert engine.current_definition.name == "square"
    engine.read_line("  dup * ;")
    assert engine.current_definition is None
    assert engine.read_line("6 square").stack == [36]

def test_definitions_compile_once_and_bind_early(engine):
    engine.read_line(": inner 1 ;")
    engine.read_line(": outer inner inner + ;")
    word = engine.dictionary.lookup("outer")
    assert isinstance(word, CompiledDefinition)
    engine.read_line(": inner 10 ;")
    assert engine.read_line("outer").stack == [2]
    assert engine.dictionary.lookup("outer") is word

def test_unknown_tokens_are_skipped_with_warning(engine):
    result = engine.read_line("1 frobnicate 2")
    assert result.stack == [1, 2]
    assert result.parsed_tokens == ["1", "2"]
    assert any("frobnicate" in e['message'] and e['category'] == 'Input' for e in engine.get_logs("WARNING"))

@pytest.mark.parametrize("text, value", [
    ("42", 42), ("-3", -3), ("+4", 4), ("2.5", 2.5), ("1e3", 1000), ("0x1F", 31),
    ("inf", None), ("nan", None), ("1_000", None), ("dup", None), ("", None),
    ("0b101", 5), ("-0x10", None), ("+0x10", None),
])
def test_parse_number(text, value):
    assert parse_number(text) == value


## REDEFINITIONS
def test_is_creates_lazy_alias(engine):
    engine.read_line("plus is +")
    assert engine.read_line("2 3 plus").stack == [5]
    assert engine.dictionary.is_permanent("plus") is False

def test_alias_to_missing_word_resolves_later(engine):
    engine.read_line("later is target")
    engine.read_line(": target 99 ;")
    assert engine.read_line("later").stack == [99]

def test_is_now_captures_current_word(engine):
    engine.read_line(": greeting 1 ;")
    engine.read_line("hello isNow greeting")
    engine.read_line(": greeting 2 ;")
    assert engine.read_line("hello").stack == [1]

def test_is_now_requires_existing_target(engine):
    result = engine.read_line("ghost isNow nowhere")
    assert isinstance(result.error, WordNotFound)

def test_tilde_marks_permanent(engine):
    engine.read_line("~ keep is dup")
    engine.read_line("~ keepnow isNow drop")
    assert engine.dictionary.is_permanent("keep") and engine.dictionary.is_permanent("keepnow")
    view = engine.get_dictionary()
    assert view["keep"] == (engine.dictionary.lookup("dup"), True)

def test_tilde_without_redefinition_is_an_error(engine):
    assert isinstance(engine.read_line("~ lonely").error, InvalidAction)

def test_circular_aliases_fail_at_lookup(engine):
    engine.read_line("A is B")
    engine.read_line("B is A")
    for line in ("a", "b"):
        result = engine.read_line(line)
        assert isinstance(result.error, CircularDefinition)
    assert "a" not in engine.get_dictionary()

def test_duplicate_redefinition_is_reported(engine):
    result = engine.read_line("dup is drop")
    assert isinstance(result.error, DuplicateRedefinition)
    assert "already in dictionary" in result.output

def test_stray_is_is_an_unknown_control_code(engine):
    assert isinstance(engine.read_line("is").error, UnknownControlCode)
    assert isinstance(engine.read_line(": f is ; f").error, UnknownControlCode)


## ERRORS
def test_unbalanced_definition_is_never_installed(engine):
    result = engine.read_line(": f if 1 ;")
    assert isinstance(result.error, UnbalancedControlStructure)
    assert engine.dictionary.lookup("f") is None
    assert engine.current_definition is None

def test_error_aborts_rest_of_line_only(engine):
    result = engine.read_line("1 2 + drop drop 99")
    assert isinstance(result.error, StackUnderflow)
    assert result.stack == []
    assert result.output == "Stack underflow in Stack"
    assert not result.output.endswith(" ok")
    assert engine.read_line("5").stack == [5]

def test_error_discards_pending_definition(engine):
    engine.read_line(": broken 1")
    engine.read_line('." unterminated')
    assert engine.current_definition is None
    assert engine.dictionary.lookup("broken") is None

def test_unterminated_string_is_a_line_error(engine):
    result = engine.read_line('1 ." never closed')
    assert isinstance(result.error, UnterminatedString)
    assert result.stack == [1]

def test_error_restores_return_stack(engine):
    result = engine.read_line(": f 3 0 do i drop drop loop ; f")
    assert isinstance(result.error, StackUnderflow)
    assert engine.get_return_stack() == []

def test_control_code_outside_definition(engine):
    assert isinstance(engine.read_line("then").error, UnknownControlCode)
    assert isinstance(engine.read_line(";").error, UnknownControlCode)

def test_missing_names_after_defining_words(engine):
    assert isinstance(engine.read_line("variable").error, EmptyName)
    assert isinstance(engine.read_line(":").error, EmptyName)

def test_python_errors_are_caught_at_line_boundary(engine):
    result = engine.read_line("1 0 /")
    assert isinstance(result.error, ZeroDivisionError)
    assert result.output
    assert engine.get_logs("ERROR")[-1]['message'].startswith("ZeroDivisionError")


## SUSPENSION
def test_sleep_suspends_and_resumes(engine, scheduler):
    result = engine.read_line("1 . 250 sleep 2 .")
    assert result.paused and engine.paused
    assert result.output == "1 "
    assert scheduler.calls[0][0] == 0.25

    finished = scheduler.fire()
    assert finished.paused is False
    assert finished.output == "1 2  ok"
    assert engine.read_line("1 . 2 .").output == finished.output

def test_read_line_while_suspended_raises(engine, scheduler):
    engine.read_line("10 sleep")
    with pytest.raises(EngineSuspended):
        engine.read_line("1")
    scheduler.fire()
    assert engine.read_line("1").stack == [1]

def test_continuation_fires_once(engine, scheduler):
    engine.read_line("10 sleep")
    _, callback = scheduler.calls[0]
    callback()
    with pytest.raises(ContinuationSpent):
        callback()

def test_pause_inside_loop_resumes_same_iteration(engine, scheduler):
    engine.read_line(": slow 3 0 do i . 5 sleep loop ;")
    result = engine.read_line("slow 42 .")
    outputs = [result.output]
    while scheduler.calls:
        outputs.append(scheduler.fire().output)
    assert outputs == ["0 ", "0 1 ", "0 1 2 ", "0 1 2 42  ok"]
    assert engine.get_return_stack() == []

def test_line_listeners_see_resumed_lines(engine, scheduler):
    seen = []
    unsubscribe = engine.on_line(seen.append)
    engine.read_line("5 sleep 7")
    assert seen == []
    scheduler.fire()
    assert [r.stack[-1] for r in seen] == [7]
    unsubscribe()
    engine.read_line("8")
    assert len(seen) == 1

def test_key_waits_for_send_key(engine):
    result = engine.read_line("key 1 +")
    assert result.paused
    finished = engine.send_key(65)
    assert finished.stack == [66]
    assert engine.read_line("last-key @").stack[-1] == 65

def test_send_key_without_waiting_key_updates_last_key(engine):
    assert engine.send_key(13) is None
    assert engine.read_line("last-key @").stack == [13]
    assert not engine.paused

def test_timer_resumed_line_blocks_new_lines_until_done():
    engine, done = Engine(), threading.Event()
    engine.on_line(lambda result: done.set())
    first = engine.read_line(": busy 200000 0 do loop ; 20 sleep busy 7")
    assert first.paused
    while engine.paused:
        time.sleep(0.001)
    with pytest.raises(EngineSuspended):
        engine.read_line("100")
    assert done.wait(60)
    assert engine.last_result.error is None
    assert engine.last_result.stack == [7]
    assert engine.read_line("100").stack == [7, 100]

def test_synchronous_scheduler_never_suspends():
    engine = Engine(EngineConfig(scheduler=lambda delay, callback: callback()))
    result = engine.read_line("1 100 sleep 2")
    assert result.paused is False
    assert result.stack == [1, 2]


## INTROSPECTION
def test_accessors(engine):
    engine.read_line("1 2")
    assert engine.get_stack() == [1, 2]
    assert engine.get_output() == " ok"
    assert engine.get_memory()['next_address'] >= 1000
    assert isinstance(engine.get_dictionary()["+"][0], NativeProcedure)

def test_logs_are_buffered_and_streamed(engine):
    streamed = []
    engine.on_log(streamed.append)
    engine.read_line("1 2 +")
    assert streamed and streamed[-1]['category'] == 'Input'
    assert set(streamed[-1]) == {'timestamp', 'level', 'category', 'message'}
    assert streamed[-1] in engine.get_logs()

def test_add_word_wraps_python_functions(engine):
    def op_square(x: int) -> int: return x * x
    engine.add_word("square", op_square)
    assert engine.read_line("7 square").stack == [49]

def test_stats_count_lines_and_steps(engine):
    engine.read_line("1 2 +")
    stats = engine.stats
    assert stats['lines'] == 1
    assert stats['steps'] >= 3

def test_engines_are_independent():
    a, b = Engine(), Engine()
    a.read_line(": only-a 1 ;")
    assert b.dictionary.lookup("only-a") is None
    assert a.log.name != b.log.name
