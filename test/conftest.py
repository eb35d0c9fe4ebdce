"""
Test configuration for Sprout tests
"""

import pytest
import sys
from pathlib import Path

import pykka

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from parsing import create_parser
from program import ProgramState, ProgramTrace, compile_program


@pytest.fixture
def parser():
  """Provide a fresh parser instance for each test"""
  return create_parser()


@pytest.fixture
def make_trace():
  """Build a ProgramTrace from Sprout source text"""
  def build(src):
    return ProgramTrace(ProgramState(compile_program(src)))
  return build


@pytest.fixture(autouse=True)
def stop_actors():
  """No test may leave provider actors running"""
  yield
  pykka.ActorRegistry.stop_all()
