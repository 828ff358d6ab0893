"""
Parser tests for Reo
Statements, precedence, blocks and parse errors
"""

import pytest
from ast_nodes import (
  Append, Binary, Call, ExpressionStatement, ForEach, FunctionDeclaration, If,
  Index, Let, ListLiteral, Name, NumberLiteral, Remove, Repeat, Return, Say, Set,
  TextLiteral, TruthLiteral, Unary, While
)
from error_handling import ReoAssignmentTargetError, ReoParseError
from parsing import ast_to_dict, create_parser, find_nodes_by_type, pretty_print_ast


@pytest.fixture
def parser():
  return create_parser()


class TestStatements:
  """Test each statement form"""

  def test_let(self, parser):
    program = parser.parse_string("let x be 5.")
    assert program.statements == (Let("x", NumberLiteral(5.0, 9), 0),)

  def test_set_name_and_element(self, parser):
    program = parser.parse_string("set x to 1. set items[0] to 2.")
    first, second = program.statements
    assert isinstance(first, Set)
    assert first.target == Name("x", 4)
    assert isinstance(second.target, Index)
    assert second.target.target.name == "items"

  def test_increase_desugars_to_set(self, parser):
    statement = parser.parse_string("increase total by 2.").statements[0]
    assert isinstance(statement, Set)
    assert statement.target.name == "total"
    assert isinstance(statement.value, Binary)
    assert statement.value.op == "+"
    assert statement.value.left == statement.target

  def test_decrease_element(self, parser):
    statement = parser.parse_string("decrease counts[1] by 1.").statements[0]
    assert statement.value.op == "-"
    assert isinstance(statement.target, Index)

  def test_say_append_remove(self, parser):
    say, append, remove = parser.parse_string(
        'say "hi". append 3 to items. remove 3 from items.').statements
    assert say == Say(TextLiteral("hi", 4), 0)
    assert isinstance(append, Append) and append.list_name == "items"
    assert isinstance(remove, Remove) and remove.list_name == "items"

  def test_expression_statement(self, parser):
    statement = parser.parse_string("greet(1).").statements[0]
    assert isinstance(statement, ExpressionStatement)
    assert statement.expression == Call("greet", (NumberLiteral(1.0, 6),), 0)


class TestBlocks:
  """Blocks, optional echo keywords and functions"""

  def test_if_otherwise(self, parser):
    statement = parser.parse_string(
        "if x is greater than 1 then: say 1. otherwise: say 2. end if.").statements[0]
    assert isinstance(statement, If)
    assert statement.condition.op == ">"
    assert len(statement.then_body) == 1
    assert len(statement.else_body) == 1

  def test_if_comma_and_no_echo(self, parser):
    statement = parser.parse_string("if x, then: say 1. end.").statements[0]
    assert isinstance(statement, If)
    assert statement.else_body == ()

  def test_while(self, parser):
    statement = parser.parse_string("while n is less than 3 do: increase n by 1. end while.").statements[0]
    assert isinstance(statement, While)
    assert len(statement.body) == 1

  def test_repeat(self, parser):
    statement = parser.parse_string("repeat 3 times: say 1. end repeat.").statements[0]
    assert isinstance(statement, Repeat)
    assert statement.count == NumberLiteral(3.0, 7)

  def test_for_each_with_echo(self, parser):
    statement = parser.parse_string("for each item in items: say item. end for each.").statements[0]
    assert isinstance(statement, ForEach)
    assert statement.variable == "item"
    assert statement.source == Name("items", 17)

  def test_nested_blocks(self, parser):
    program = parser.parse_string(
        "repeat 2 times: for each x in [1, 2]: if x: say x. end. end. end.")
    assert len(find_nodes_by_type(program, Say)) == 1
    assert len(find_nodes_by_type(program, ListLiteral)) == 1

  def test_function_declaration(self, parser):
    program = parser.parse_string("to add(a, b): return a plus b. end. say add(1, 2).")
    assert len(program.functions) == 1
    func = program.functions[0]
    assert isinstance(func, FunctionDeclaration)
    assert func.name == "add"
    assert func.parameters == ("a", "b")
    assert isinstance(func.body[0], Return)
    assert len(program.statements) == 1

  def test_function_without_parameters(self, parser):
    func = parser.parse_string("to hello(): say \"hi\". end.").functions[0]
    assert func.parameters == ()


class TestExpressions:
  """Precedence and operand forms"""

  def test_multiplication_binds_tighter(self, parser):
    expr = parser.parse_expression("2 + 3 * 4")
    assert expr.op == "+"
    assert expr.right.op == "*"

  def test_parentheses(self, parser):
    expr = parser.parse_expression("(2 + 3) * 4")
    assert expr.op == "*"
    assert expr.left.op == "+"

  def test_left_associative(self, parser):
    expr = parser.parse_expression("10 - 4 - 3")
    assert expr.op == "-"
    assert expr.left.op == "-"
    assert expr.right == NumberLiteral(3.0, 9)

  def test_logic_below_comparison(self, parser):
    expr = parser.parse_expression("a < b || c == d && e")
    assert expr.op == "||"
    assert expr.left.op == "<"
    assert expr.right.op == "&&"
    assert expr.right.left.op == "=="

  def test_unary_operators(self, parser):
    expr = parser.parse_expression("-x + !y")
    assert isinstance(expr.left, Unary) and expr.left.op == "-"
    assert isinstance(expr.right, Unary) and expr.right.op == "!"

  def test_literals(self, parser):
    assert parser.parse_expression("true") == TruthLiteral(True, 0)
    assert parser.parse_expression("FALSE") == TruthLiteral(False, 0)
    assert parser.parse_expression('"x"') == TextLiteral("x", 0)
    assert parser.parse_expression("[]") == ListLiteral((), 0)

  def test_index_and_call_chain(self, parser):
    expr = parser.parse_expression("range(1, 3)[0]")
    assert isinstance(expr, Index)
    assert isinstance(expr.target, Call)
    assert expr.target.name == "range"

  def test_binary_offset_is_left_operand(self, parser):
    expr = parser.parse_expression("x plus 1")
    assert expr.offset == 0


class TestParseErrors:
  """Malformed programs"""

  def test_missing_dot(self, parser):
    with pytest.raises(ReoParseError) as info:
      parser.parse_string("say 1")
    assert info.value.expected == "DOT"
    assert info.value.found == "EOF"
    assert info.value.offset == 5

  def test_unclosed_block(self, parser):
    with pytest.raises(ReoParseError) as info:
      parser.parse_string("while true: say 1.")
    assert info.value.expected == "END"
    assert info.value.found == "EOF"

  def test_missing_colon(self, parser):
    with pytest.raises(ReoParseError) as info:
      parser.parse_string("while x say 1. end.")
    assert info.value.expected == "COLON"

  def test_call_on_non_name(self, parser):
    with pytest.raises(ReoParseError):
      parser.parse_string('say "f"(1).')

  def test_missing_expression(self, parser):
    with pytest.raises(ReoParseError) as info:
      parser.parse_string("say .")
    assert info.value.offset == 4

  @pytest.mark.parametrize("source", [
      "set 1 to 2.",
      "set f(x) to 2.",
      "set a[0][1] to 2.",
      "increase a plus b by 1.",
  ])
  def test_invalid_assignment_targets(self, parser, source):
    with pytest.raises(ReoAssignmentTargetError):
      parser.parse_string(source)

  def test_assignment_target_error_is_parse_error(self, parser):
    with pytest.raises(ReoParseError) as info:
      parser.parse_string("set 3 to 4.")
    assert info.value.kind == "AssignmentTargetError"

  @pytest.mark.parametrize("source", ["set (x) to 1.", "increase (total) by 1."])
  def test_parenthesized_assignment_target(self, parser, source):
    with pytest.raises(ReoAssignmentTargetError) as info:
      parser.parse_string(source)
    assert info.value.found == "LPAREN"

  def test_call_on_parenthesized_name(self, parser):
    with pytest.raises(ReoParseError) as info:
      parser.parse_string("say (f)(1).")
    assert "Only simple names" in info.value.message

  @pytest.mark.parametrize("source", [
      "say " + "(" * 3000 + "1" + ")" * 3000 + ".",
      "say " + "- " * 5000 + "1.",
  ])
  def test_deep_nesting_is_parse_error(self, parser, source):
    with pytest.raises(ReoParseError) as info:
      parser.parse_string(source)
    assert info.value.message == "Expression nested too deeply"
    assert info.value.found != "EOF"

  def test_deep_nesting_in_expression(self, parser):
    with pytest.raises(ReoParseError):
      parser.parse_expression("!" * 5000 + "true")


class TestAstUtilities:
  """Dumping helpers used by the CLI"""

  def test_pretty_print(self, parser):
    text = pretty_print_ast(parser.parse_string("let x be 1 + 2."))
    assert text.splitlines()[0] == "Program(functions=())"
    assert "Let(name='x') @0" in text
    assert "Binary(op='+') @9" in text

  def test_ast_to_dict(self, parser):
    result = ast_to_dict(parser.parse_string("say 1."))
    assert result['node'] == "Program"
    assert result['statements'][0]['node'] == "Say"
    assert result['statements'][0]['value'] == {'node': 'NumberLiteral', 'value': 1.0, 'offset': 4}

  def test_parse_file(self, parser, tmp_path):
    path = tmp_path / "prog.reo"
    path.write_text("say 1.\n", encoding="utf-8")
    program = parser.parse_file(str(path))
    assert isinstance(program.statements[0], Say)
