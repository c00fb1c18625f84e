from utils.text_processing import normalize_text, normalize_texts, truncate_text

SAMPLES = [
    "Hello, World! #AI 2024 rocks…  ",
    "email@x.com $100 & co",
    "x#y ##  #tag#tag",
    "a_b\tc\n\nd",
    "Self-determination (SDT) theory: 3 needs; 12% of users.",
    "Ünïcödé – “quotes” and ½ fractions ²",
    "",
    "   ",
]

def test_removes_punctuation_digits_and_hashtags():
    assert normalize_text("Hello, World! #AI 2024 rocks…  ") == "Hello World rocks"
    assert normalize_text("email@x.com $100 & co") == "email x com co"
    assert normalize_text("Self-determination (SDT) theory") == "Self determination SDT theory"

def test_collapses_whitespace_and_trims():
    assert normalize_text("  a \t b\n\nc  ") == "a b c"

def test_non_string_input_normalizes_to_empty():
    assert normalize_text(None) == ""
    assert normalize_text(float('nan')) == ""

def test_normalize_is_idempotent():
    for sample in SAMPLES:
        once = normalize_text(sample)
        assert normalize_text(once) == once

def test_normalize_texts_preserves_order():
    assert normalize_texts(["b, 1", "a!"]) == ["b", "a"]

def test_truncate_text_keeps_word_boundary():
    assert truncate_text("social media use", max_length=10) == "social..."
    assert truncate_text("short", max_length=10) == "short"
