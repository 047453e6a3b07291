"""Tests for class resolution and the edit-distance helper."""

import itertools

import pytest

from wlsave import NoMatchingClassError, PlayerClass, levenshtein, resolve_class

CLASSES = {
    "Brr-Zerker": PlayerClass("/Game/PlayerCharacters/Barbarian/PlayerClassId_Barbarian"),
    "Graveborn": PlayerClass("/Game/PlayerCharacters/Necromancer/PlayerClassId_Necromancer"),
    "Spellshot": PlayerClass("/Game/PlayerCharacters/GunMage/PlayerClassId_GunMage"),
}


class TestResolveClass:
    def test_exact_match(self):
        path = "/Game/PlayerCharacters/GunMage/PlayerClassId_GunMage"
        assert resolve_class(path, CLASSES) == "Spellshot"

    def test_first_match_wins(self):
        path = "/Game/PlayerCharacters/Barbarian/PlayerClassId_Barbarian"
        classes = {"First": PlayerClass(path), "Second": PlayerClass(path)}
        assert resolve_class(path, classes) == "First"

    def test_near_miss_is_not_resolved(self):
        # one character away from Spellshot, still no match
        path = "/Game/PlayerCharacters/GunMage/PlayerClassId_GunMagE"
        with pytest.raises(NoMatchingClassError) as excinfo:
            resolve_class(path, CLASSES)
        assert excinfo.value.class_path == path

    def test_empty_mapping(self):
        with pytest.raises(LookupError):
            resolve_class("/Game/Anything", {})

    def test_custom_attribute(self):
        class Record:
            def __init__(self, path):
                self.path = path

        classes = {"A": Record("/a"), "B": Record("/b")}
        assert resolve_class("/b", classes, attr="path") == "B"


class TestLevenshtein:
    def test_kitten_sitting(self):
        assert levenshtein("kitten", "sitting") == 3

    @pytest.mark.parametrize("s,t,expected", [
        ("", "", 0),
        ("", "abc", 3),
        ("abc", "", 3),
        ("flaw", "lawn", 2),
        ("GunMage", "GunMagE", 1),
    ])
    def test_known_distances(self, s, t, expected):
        assert levenshtein(s, t) == expected

    WORDS = ["", "a", "ab", "kitten", "sitting", "mitten", "Barbarian", "Necromancer"]

    def test_identity(self):
        for s in self.WORDS:
            assert levenshtein(s, s) == 0

    def test_zero_only_for_equal(self):
        for s, t in itertools.permutations(self.WORDS, 2):
            assert levenshtein(s, t) > 0

    def test_symmetric(self):
        for s, t in itertools.combinations(self.WORDS, 2):
            assert levenshtein(s, t) == levenshtein(t, s)

    def test_triangle_inequality(self):
        for s, t, u in itertools.permutations(self.WORDS, 3):
            assert levenshtein(s, u) <= levenshtein(s, t) + levenshtein(t, u)
