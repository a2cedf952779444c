# CUI // SP-CTI
"""Tests for boardroom.governance.glob_match."""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from boardroom.governance.glob_match import glob_match, literal_prefix


class TestGlobMatch:

    @pytest.mark.parametrize("path,pattern,expected", [
        ("board.yaml", "board.yaml", True),
        ("agents/cto.md", "agents/*.md", True),
        ("agents/team/cto.md", "agents/*.md", False),
        ("agents/team/cto.md", "agents/**", True),
        ("src/a/b/c.py", "src/**/*.py", True),
        ("templates/x.yaml", "templates/*.yaml", True),
        ("templates/x.yml", "templates/*.yaml", False),
        ("sub/board.yaml", "board.yaml", False),
        ("board.yaml.bak", "board.yaml", False),
    ])
    def test_matches(self, path, pattern, expected):
        assert glob_match(path, pattern) is expected

    def test_regex_characters_are_literal(self):
        assert glob_match("docs/a+b.md", "docs/a+b.md")
        assert not glob_match("docs/aab.md", "docs/a+b.md")
        assert glob_match("cfg/[x].yaml", "cfg/[x].yaml")
        assert not glob_match("cfg/x.yaml", "cfg/[x].yaml")
        assert not glob_match("boardXyaml", "board.yaml")

    def test_question_mark_is_literal(self):
        assert not glob_match("a.md", "?.md")
        assert glob_match("?.md", "?.md")


class TestLiteralPrefix:

    def test_prefix(self):
        assert literal_prefix("src/mymodule/*") == "src/mymodule/"
        assert literal_prefix("src/**/x.py") == "src/"
        assert literal_prefix("README.md") == "README.md"
