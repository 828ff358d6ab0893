"""
Test configuration for the Reo test suite
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from interpreter import make_execution_context, run_source


class ScriptedConsole:
  """Collects everything written and feeds queued input lines"""

  def __init__(self, lines=None):
    self.chunks = []
    self.lines = list(lines or [])

  def write(self, text):
    self.chunks.append(text)

  def read_line(self):
    if not self.lines:
      return None
    return self.lines.pop(0)

  @property
  def text(self):
    return ''.join(self.chunks)

  @property
  def output(self):
    """Written text split into lines (without the trailing empty one)"""
    return self.text.splitlines()


@pytest.fixture
def console():
  return ScriptedConsole()


@pytest.fixture
def run_reo():
  """Run Reo source and return the lines it said"""
  def run(source, inputs=None, clock=None):
    console = ScriptedConsole(inputs)
    context = make_execution_context(write=console.write, read_line=console.read_line, clock=clock)
    run_source(source, context)
    return console.output

  return run
