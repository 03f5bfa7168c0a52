"""Tests for voicereplica.entities."""

from __future__ import annotations

from voicereplica.entities import extract_entities


class TestExtractEntities:
    def test_empty_text_has_no_keys(self) -> None:
        assert extract_entities("") == {}
        assert extract_entities("hello there") == {}

    def test_numbers_are_ints(self) -> None:
        assert extract_entities("add 12 and 30")["numbers"] == [12, 30]

    def test_first_time_expression(self) -> None:
        entities = extract_entities("meet at 10:30 pm or 11 am")
        assert entities["time"] == "10:30 pm"

    def test_time_without_minutes(self) -> None:
        assert extract_entities("wake me at 7am")["time"] == "7am"

    def test_url_and_email(self) -> None:
        entities = extract_entities("send https://example.com/a?b=1 to rahul@gmail.com now")
        assert entities["url"] == "https://example.com/a?b=1"
        assert entities["email"] == "rahul@gmail.com"

    def test_slash_date_wins_over_iso_date(self) -> None:
        entities = extract_entities("either 2024-05-01 or 12/25/2024")
        assert entities["date"] == "12/25/2024"

    def test_iso_date(self) -> None:
        assert extract_entities("book for 2024-05-01")["date"] == "2024-05-01"

    def test_absent_signals_are_omitted(self) -> None:
        entities = extract_entities("call 5 friends")
        assert set(entities) == {"numbers"}

    def test_pure(self) -> None:
        text = "remind me at 9:15 am about https://x.io on 2024-01-02"
        assert extract_entities(text) == extract_entities(text)
