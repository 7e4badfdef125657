"""
Tests for JSON extraction from collaborator replies

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

import pytest

from deckforge.errors import ResponseContractError
from deckforge.json_utils import extract_json_object, find_json_object


class TestExtractJsonObject:

    def test_plain(self):
        assert extract_json_object('{"title": "A"}') == {"title": "A"}

    def test_fenced_with_prose(self):
        text = 'Here you go:\n```json\n{"title": "A", "content": ["x"]}\n```\nAnything else?'
        assert extract_json_object(text) == {"title": "A", "content": ["x"]}

    def test_braces_inside_strings(self):
        """Braces and escaped quotes inside strings do not end the object."""
        text = 'prefix {"title": "a } b", "notes": "say \\"{hi}\\""} suffix'
        assert extract_json_object(text) == {"title": "a } b", "notes": 'say "{hi}"'}

    def test_skips_invalid_candidate(self):
        """A brace span that is not JSON is skipped in favour of the next one."""
        text = 'use {braces} like this: {"title": "B"}'
        assert extract_json_object(text) == {"title": "B"}

    def test_nested(self):
        assert extract_json_object('{"a": {"b": 1}} {"c": 2}') == {"a": {"b": 1}}

    def test_empty(self):
        with pytest.raises(ResponseContractError) as exc:
            extract_json_object("")
        assert exc.value.issues == ["empty response"]

    def test_no_object(self):
        with pytest.raises(ResponseContractError) as exc:
            extract_json_object("no json at all")
        assert exc.value.issues == ["no JSON object"]

    def test_unbalanced(self):
        assert find_json_object('{"title": "A"') is None
