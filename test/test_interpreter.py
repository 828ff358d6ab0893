"""
Interpreter tests for Reo
Run whole programs and check what they say
"""

from datetime import datetime
import threading
import time
import pytest

from error_handling import (
  ReoBindingError, ReoIndexError, ReoRuntimeError, ReoTimeoutError, ReoTypeError,
  ReoUndefinedVariableError
)
from interpreter import (
  create_interpreter, make_execution_context, make_frame, frame_bind, frame_lookup,
  run_program, run_with_timeout
)
from parsing import parse_source
from values import make_number, to_text


class TestBasics:
  """Literals, precedence, variables"""

  def test_literals_round_trip(self, run_reo):
    assert run_reo('say 42. say 2.5. say "hi there". say true. say [1, "a", false].') == [
        "42", "2.5", "hi there", "true", "[1, a, false]"
    ]

  def test_precedence(self, run_reo):
    assert run_reo("say 2 + 3 * 4. say (2 + 3) * 4.") == ["14", "20"]

  def test_english_operators(self, run_reo):
    assert run_reo("say 10 minus 4 divided by 2. say 7 mod 4. say 3 times 5.") == ["8", "3", "15"]

  def test_float_equality_tolerance(self, run_reo):
    assert run_reo("say (0.1 + 0.2) is equal to 0.3.") == ["true"]

  def test_text_concatenation(self, run_reo):
    assert run_reo('let n be 3. say "n is " + n. say 1 + "x".') == ["n is 3", "1x"]

  def test_comparison_phrases(self, run_reo):
    source = """
    say 3 is greater than 2.
    say 3 is at most 2.
    say "a" is less than "b".
    say 1 is not 2.
    say not true or 1 is at least 1.
    """
    assert run_reo(source) == ["true", "false", "true", "true", "true"]

  def test_names_are_case_insensitive(self, run_reo):
    assert run_reo("let Total be 1. set TOTAL to total + 1. say total.") == ["2"]

  def test_set_creates_missing_name(self, run_reo):
    assert run_reo("set fresh to 9. say fresh.") == ["9"]

  def test_increase_and_decrease(self, run_reo):
    assert run_reo("let x be 10. increase x by 5. decrease x by 3. say x.") == ["12"]

  def test_eager_logic_evaluates_both_sides(self, run_reo):
    source = """
    to noisy(v):
      say "called".
      return v.
    end.
    say false and noisy(true).
    """
    assert run_reo(source) == ["called", "false"]


class TestControlFlow:
  """if, while, repeat, for each"""

  def test_if_otherwise(self, run_reo):
    source = """
    let x be 5.
    if x is greater than 3 then:
      say "big".
    otherwise:
      say "small".
    end if.
    if x is less than 3: say "no". end.
    """
    assert run_reo(source) == ["big"]

  def test_while(self, run_reo):
    source = "let n be 0. while n is less than 3 do: say n. increase n by 1. end while."
    assert run_reo(source) == ["0", "1", "2"]

  def test_repeat_counts(self, run_reo):
    source = """
    let n be 5. let total be 0.
    repeat n times: set total to total + 1. end repeat.
    say total.
    """
    assert run_reo(source) == ["5"]

  def test_repeat_count_evaluated_once(self, run_reo):
    source = "let n be 3. repeat n times: increase n by 1. end. say n."
    assert run_reo(source) == ["6"]

  @pytest.mark.parametrize("count", ["0", "-2", "0.5", "1 / 0", '"abc"'])
  def test_repeat_runs_zero_times(self, run_reo, count):
    assert run_reo(f"repeat {count} times: say 1. end. say \"done\".") == ["done"]

  def test_repeat_floors_count(self, run_reo):
    assert run_reo("repeat 2.9 times: say 1. end.") == ["1", "1"]

  def test_for_each_binding_survives(self, run_reo):
    source = "for each x in [1, 2, 3]: say x. end for each. say x."
    assert run_reo(source) == ["1", "2", "3", "3"]

  def test_for_each_iterates_snapshot(self, run_reo):
    source = """
    let items be [1, 2].
    for each x in items:
      append x to items.
    end.
    say items.
    """
    assert run_reo(source) == ["[1, 2, 1, 2]"]

  def test_for_each_over_range_descending(self, run_reo):
    assert run_reo("for each i in range(3, 1): say i. end.") == ["3", "2", "1"]


class TestLists:
  """Aliasing, indexing, append and remove"""

  def test_aliasing(self, run_reo):
    source = "let a be [1, 2]. let b be a. append 3 to b. say a. say length(a)."
    assert run_reo(source) == ["[1, 2, 3]", "3"]

  def test_index_and_assignment(self, run_reo):
    source = "let a be [10, 20, 30]. set a[1] to 99. say a[1]. say a[2.7]. say a."
    assert run_reo(source) == ["99", "30", "[10, 99, 30]"]

  def test_increase_element(self, run_reo):
    assert run_reo("let a be [1, 2]. increase a[0] by 10. say a.") == ["[11, 2]"]

  def test_remove_every_match(self, run_reo):
    source = 'let a be [1, "1", 2, 1]. remove 1 from a. say a.'
    assert run_reo(source) == ["[2]"]

  def test_lists_pass_by_reference(self, run_reo):
    source = """
    to grow(items):
      append "x" to items.
    end.
    let mine be [].
    grow(mine).
    grow(mine).
    say mine.
    """
    assert run_reo(source) == ["[x, x]"]

  def test_index_out_of_range(self, run_reo):
    with pytest.raises(ReoIndexError):
      run_reo("let a be [1]. say a[1].")

  def test_negative_index(self, run_reo):
    with pytest.raises(ReoIndexError):
      run_reo("let a be [1]. say a[-1].")

  def test_index_non_list(self, run_reo):
    with pytest.raises(ReoTypeError):
      run_reo('let a be "text". say a[0].')

  def test_append_to_non_list(self, run_reo):
    with pytest.raises(ReoTypeError):
      run_reo("let a be 5. append 1 to a.")

  def test_for_each_over_non_list(self, run_reo):
    with pytest.raises(ReoTypeError):
      run_reo("for each c in \"abc\": say c. end.")


class TestFunctions:
  """User functions, frames and return"""

  def test_call_and_return(self, run_reo):
    source = """
    to square(n):
      return n times n.
    end.
    say square(7).
    """
    assert run_reo(source) == ["49"]

  def test_functions_visible_before_declaration(self, run_reo):
    assert run_reo("say twice(4). to twice(n): return n * 2. end.") == ["8"]

  def test_recursion(self, run_reo):
    source = """
    to fact(n):
      if n is at most 1: return 1. end.
      return n * fact(n - 1).
    end.
    say fact(10).
    """
    assert run_reo(source) == ["3628800"]

  def test_falling_off_end_returns_nothing(self, run_reo):
    assert run_reo("to quiet(): let x be 1. end. say quiet().") == ["nothing"]

  def test_return_exits_loops(self, run_reo):
    source = """
    to first_big(items):
      for each x in items:
        if x is greater than 10: return x. end.
      end.
      return -1.
    end.
    say first_big([3, 12, 40]).
    """
    assert run_reo(source) == ["12"]

  def test_fresh_frame_per_call(self, run_reo):
    with pytest.raises(ReoUndefinedVariableError) as info:
      run_reo("let secret be 1. to peek(): return secret. end. say peek().")
    assert info.value.name == "secret"

  def test_parameters_do_not_leak(self, run_reo):
    with pytest.raises(ReoUndefinedVariableError):
      run_reo("to f(p): return p. end. say f(1). say p.")

  def test_function_names_case_insensitive(self, run_reo):
    assert run_reo("to Shout(t): return t + \"!\". end. say SHOUT(\"hey\").") == ["hey!"]

  def test_deep_recursion_is_runtime_error(self, run_reo):
    with pytest.raises(ReoRuntimeError):
      run_reo("to down(n): return down(n + 1). end. say down(0).")


class TestErrors:
  """Runtime and binding errors"""

  def test_undefined_variable_names_identifier(self, run_reo):
    with pytest.raises(ReoUndefinedVariableError) as info:
      run_reo("say mystery.")
    assert info.value.name == "mystery"
    assert "mystery" in info.value.message
    assert info.value.offset == 4

  def test_unknown_function_before_running(self, run_reo):
    with pytest.raises(ReoBindingError):
      run_reo('say "first". nope(1).')

  def test_nothing_runs_when_binding_fails(self):
    written = []
    context = make_execution_context(write=written.append)
    with pytest.raises(ReoBindingError):
      run_program(parse_source('say "first". say length(1, 2).'), context)
    assert written == []

  def test_builtin_error_gets_call_offset(self, tmp_path):
    missing = tmp_path / "missing.txt"
    source = f'say read_text("{missing.as_posix()}").'
    context = make_execution_context(write=lambda text: None)
    with pytest.raises(ReoRuntimeError) as info:
      run_program(parse_source(source), context)
    assert info.value.offset == 4
    assert "missing.txt" in info.value.message


class TestBuiltins:
  """Built-ins that touch the outside world go through the context"""

  def test_conversions(self, run_reo):
    source = 'say to_number("12") + 1. say to_text(5) + 5. say to_truth(""). say length("abc").'
    assert run_reo(source) == ["13", "55", "false", "3"]

  def test_ask_reads_line(self, run_reo):
    output = run_reo('let name be ask("Name? "). say "Hello, " + name.', inputs=["Ada"])
    assert output == ["Name? Hello, Ada"]

  def test_ask_at_end_of_input(self, run_reo):
    assert run_reo('say length(ask("")).', inputs=[]) == ["0"]

  def test_clock_builtins(self, run_reo):
    fixed = datetime(2024, 3, 9, 14, 5, 6)
    source = 'say now(). say format_now("%Y-%m-%d %H:%M").'
    assert run_reo(source, clock=lambda: fixed) == ["2024-03-09T14:05:06", "2024-03-09 14:05"]

  def test_write_then_read_text(self, run_reo, tmp_path):
    target = (tmp_path / "note.txt").as_posix()
    source = f'let p be write_text("{target}", [1, 2]). say p. say read_text(p).'
    assert run_reo(source) == [target, "[1, 2]"]
    assert (tmp_path / "note.txt").read_text(encoding="utf-8") == "[1, 2]"


class TestInterpreterSession:
  """Frames and functions carried across runs"""

  def test_session_keeps_state(self):
    written = []
    interpreter = create_interpreter(context=make_execution_context(write=written.append))
    interpreter.run_source("let x be 2. to double(n): return n * 2. end.")
    interpreter.run_source("say double(x).")
    assert written == ["4\n"]
    assert "double" in interpreter.functions
    assert to_text(interpreter.frame["x"]) == "2"

  def test_frame_helpers(self):
    frame = make_frame()
    frame_bind(frame, "Count", make_number(1))
    assert frame_lookup(frame, "COUNT") == make_number(1)
    with pytest.raises(ReoUndefinedVariableError):
      frame_lookup(frame, "other", 7)


class TestTimeout:
  """Actor-hosted execution"""

  def test_finishes_within_timeout(self):
    written = []
    context = make_execution_context(write=written.append)
    frame = run_with_timeout(parse_source("let x be 1. say x + 1."), context, timeout=5)
    assert written == ["2\n"]
    assert frame["x"] == make_number(1)

  def test_errors_propagate(self):
    context = make_execution_context(write=lambda text: None)
    with pytest.raises(ReoUndefinedVariableError):
      run_with_timeout(parse_source("say ghost."), context, timeout=5)

  def test_infinite_loop_times_out(self):
    context = make_execution_context(write=lambda text: None)
    with pytest.raises(ReoTimeoutError):
      run_with_timeout(parse_source("while true: let x be 1. end."), context, timeout=0.2)

  @pytest.mark.parametrize("source", ["while true: end.", "repeat 1000000000000000 times: end."])
  def test_empty_loop_thread_stops_after_timeout(self, source):
    def program_threads():
      return [t for t in threading.enumerate() if "ProgramActor" in t.name]

    before = len(program_threads())
    context = make_execution_context(write=lambda text: None)
    with pytest.raises(ReoTimeoutError):
      run_with_timeout(parse_source(source), context, timeout=0.2)
    deadline = time.monotonic() + 5
    while len(program_threads()) > before and time.monotonic() < deadline:
      time.sleep(0.05)
    assert len(program_threads()) <= before

  def test_later_run_does_not_revive_timed_out_run(self):
    written = []
    context = make_execution_context(write=written.append)
    with pytest.raises(ReoTimeoutError):
      run_with_timeout(parse_source("while true: end. say \"late\"."), context, timeout=0.2)
    run_with_timeout(parse_source("say 1."), context, timeout=5)
    time.sleep(0.3)
    assert written == ["1\n"]
    assert context['halted'] is False
