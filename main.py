"""
Reo Programming Language - Main Entry Point
An English-phrased scripting language: say, let, repeat, for each
"""

import sys
import argparse
import json
from typing import Optional, List
import os

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from error_handling import ReoError, ReoErrorHandler, ReoParseError
from interpreter import create_interpreter, create_debug_interpreter, make_execution_context
from normalizer import normalize
from parsing import KEYWORDS, create_parser, create_debug_parser, pretty_print_ast
from semantics import create_analyzer
from stdlib import list_builtin_functions
from values import to_text

VERSION = "Reo v1.0.0"
HISTORY_FILE = "~/.reo_history"


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='reo',
      description='Reo Programming Language - plain English scripting',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.reo               # Run a Reo script
  %(prog)s -i                       # Interactive mode
  %(prog)s --normalize script.reo   # Show the text after phrase rewriting
  %(prog)s --tokens script.reo      # Show the token stream
  %(prog)s --parse script.reo       # Show the AST
  %(prog)s --check script.reo       # Parse and bind without running
  %(prog)s --timeout 5 script.reo   # Give up after 5 seconds
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='Reo script file to execute'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--normalize',
      action='store_true',
      help='Print the normalized source text'
  )

  parser.add_argument(
      '--tokens',
      action='store_true',
      help='Print the token stream'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse file and show the AST'
  )

  parser.add_argument(
      '--check',
      action='store_true',
      help='Parse and bind the file without running it'
  )

  parser.add_argument(
      '--timeout',
      type=float,
      metavar='SECONDS',
      help='Run inside an actor and stop waiting after SECONDS'
  )

  parser.add_argument(
      '--json-errors',
      action='store_true',
      help='Report errors as JSON objects on stderr'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def report_error(exc: ReoError, source: str, filename: str, json_errors: bool = False) -> None:
  """Print a Reo error to stderr"""
  handler = ReoErrorHandler(source, filename)
  if json_errors:
    print(json.dumps(handler.to_dict(exc)), file=sys.stderr)
  else:
    print(handler.describe(exc), file=sys.stderr, end="")


def load_source(script_path: str) -> str:
  """Read a script, exiting with status 1 when it cannot be read"""
  try:
    with open(script_path, 'r', encoding='utf-8') as f:
      return f.read()
  except FileNotFoundError:
    print(f"Error: Script file '{script_path}' not found", file=sys.stderr)
    print(f"  Hint: Check the file path and make sure the file exists", file=sys.stderr)
  except PermissionError:
    print(f"Error: Permission denied reading '{script_path}'", file=sys.stderr)
    print(f"  Hint: Make sure you have read permissions for this file", file=sys.stderr)
  except UnicodeDecodeError as e:
    print(f"Error: Cannot decode file '{script_path}': {e}", file=sys.stderr)
    print(f"  Hint: Make sure the file is a text file with UTF-8 encoding", file=sys.stderr)
  except IsADirectoryError:
    print(f"Error: '{script_path}' is a directory", file=sys.stderr)
  sys.exit(1)


def run_script_file(script_path: str, args: argparse.Namespace) -> None:
  """Run (or inspect) a Reo script file"""
  source = load_source(script_path)
  parser = create_debug_parser() if args.debug else create_parser()

  try:
    if args.normalize:
      print(normalize(source))
      return

    if args.tokens:
      for token in parser.tokenize(source):
        print(token)
      return

    program = parser.parse_string(source)
    if args.parse:
      print(pretty_print_ast(program))
      return

    if args.check:
      functions = create_analyzer(args.debug).analyze(program)
      print(f"{script_path}: ok ({len(functions)} functions, {len(program.statements)} statements)")
      return

    interpreter = create_interpreter(context=make_execution_context(debug=args.debug))
    interpreter.run(program, timeout=args.timeout)

  except ReoError as e:
    sys.stdout.flush()
    report_error(e, source, script_path, args.json_errors)
    sys.exit(1)


def setup_readline():
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser(HISTORY_FILE)
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First time, no history yet

  readline.set_history_length(1000)

  completions = sorted(KEYWORDS) + list_builtin_functions() + [
      # REPL commands
      ":tokens", ":normalize", ":parse", ":env", ":help", "exit."
  ]

  def completer(text, state):
    options = [cmd for cmd in completions if cmd.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  import atexit
  atexit.register(readline.write_history_file, history_file)


def print_repl_help() -> None:
  print("REPL Commands:")
  print("  :normalize <code> - Show the normalized text")
  print("  :tokens <code>    - Show the token stream")
  print("  :parse <code>     - Show the AST")
  print("  :env              - Show variables and functions")
  print("  :help             - Show this help")
  print("  exit.             - Exit REPL")
  print()
  print("Language features:")
  print("  let x be 5.                           - Bind a variable")
  print("  set x to x plus 1.                    - Assign")
  print("  say x is greater than 3.              - Print a value")
  print("  repeat 3 times: say \"hi\". end.        - Loops (also while, for each)")
  print("  to double(n): return n times 2. end.  - Declare a function")


def is_incomplete(exc: ReoError) -> bool:
  """A parse error at end of input means the block is still open"""
  return isinstance(exc, ReoParseError) and exc.found == "EOF"


def run_repl_command(code: str, interpreter, parser) -> None:
  """Handle one ':command' line"""
  command, _, argument = code.strip().partition(" ")
  try:
    if command == ":normalize":
      print(normalize(argument))
    elif command == ":tokens":
      for token in parser.tokenize(argument):
        print(token)
    elif command == ":parse":
      print(pretty_print_ast(parser.parse_string(argument)))
    elif command == ":env":
      if not interpreter.frame and not interpreter.functions:
        print("  (no user-defined bindings)")
      for name, value in interpreter.frame.items():
        val_str = to_text(value)
        if len(val_str) > 60:
          val_str = val_str[:57] + "..."
        print(f"  {name} = {val_str} : {value['type']}")
      for func in interpreter.functions.values():
        print(f"  to {func.name}({', '.join(func.parameters)})")
    elif command == ":help":
      print_repl_help()
    else:
      print(f"Unknown command: {command} (try :help)")
  except ReoError as e:
    report_error(e, argument, "<repl>")


def run_interactive_mode(debug: bool = False, timeout: Optional[float] = None) -> None:
  """Run Reo in interactive mode; one frame is shared by every input"""
  print(f"{VERSION} - Interactive Mode")
  print("Type 'exit.' to quit, ':help' for commands")
  if READLINE_AVAILABLE:
    print("Readline enabled: Use ↑/↓ for history, Tab for completion")
  if debug:
    print("Debug mode enabled")
  print()

  setup_readline()

  parser = create_debug_parser() if debug else create_parser()
  interpreter = create_debug_interpreter() if debug else create_interpreter()
  pending: List[str] = []

  while True:
    try:
      code = input("....> " if pending else "reo> ")
    except (KeyboardInterrupt, EOFError):
      print("\nGoodbye!")
      break

    if not pending:
      if code.strip() == "exit.":
        break
      if not code.strip():
        continue
      if code.startswith(":"):
        run_repl_command(code, interpreter, parser)
        continue

    pending.append(code)
    source = "\n".join(pending)
    try:
      program = parser.parse_string(source)
    except ReoError as e:
      if is_incomplete(e) and code.strip():
        continue
      report_error(e, source, "<repl>")
      pending = []
      continue

    pending = []
    try:
      interpreter.run(program, timeout=timeout)
    except ReoError as e:
      report_error(e, source, "<repl>")


def show_language_info() -> None:
  """Show Reo language information"""
  print("Reo Programming Language")
  print("=" * 50)
  print("A small scripting language written in plain English:")
  print("• Phrases like 'is greater than' and 'plus' become operators")
  print("• Numbers, text, truth values and lists")
  print("• if / while / repeat / for each blocks closed with 'end.'")
  print("• Functions declared with 'to name(params):'")
  print()


def main(argv: Optional[List[str]] = None) -> None:
  """Main entry point for Reo"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(argv)

  if args.timeout is not None and args.timeout <= 0:
    arg_parser.error("--timeout must be a positive number of seconds")

  if args.script:
    run_script_file(args.script, args)

  elif args.interactive:
    run_interactive_mode(debug=args.debug, timeout=args.timeout)

  elif argv is None and len(sys.argv) == 1:
    # No arguments - show info and start interactive mode
    show_language_info()
    print("Starting interactive mode...")
    print("Use 'reo --help' for command line options")
    print()
    run_interactive_mode()

  else:
    arg_parser.print_help()
    print()
    show_language_info()


if __name__ == "__main__":
  main()
