import pytest

from helpers import good_text
from pdfscribe.models import QualityAnalysis
from pdfscribe.quality import QualityRule, TextQualityAnalyzer, analyze_text_quality


@pytest.mark.parametrize("text", ["", "   \n\t  "])
def test_empty_text_is_all_false(text):
    assert analyze_text_quality(text) == QualityAnalysis()


def test_short_text_always_needs_ocr():
    a = analyze_text_quality(good_text(1500))
    assert a.should_skip_ocr is False
    assert a.has_ocr_indicators is True
    assert a.quality_score == 10


def test_clean_long_text_skips_ocr():
    a = analyze_text_quality(good_text(12000))
    assert a.is_high_quality
    assert a.has_substantial_content
    assert not a.is_repetitive
    assert not a.has_ocr_indicators
    assert a.should_skip_ocr
    assert a.quality_score == 100


def test_very_long_text_scores_without_length_bonus():
    a = analyze_text_quality(good_text(80000))
    assert a.should_skip_ocr
    assert a.quality_score == 90


def test_repetitive_text_does_not_skip():
    line = "Cartorio de Registro Civil das Pessoas Naturais de Campinas"
    a = analyze_text_quality("\n".join([line] * 100))
    assert a.is_repetitive
    assert not a.should_skip_ocr


def test_replacement_character_marks_text_degraded():
    text = good_text(5000) + "\nvalor � pago"
    a = analyze_text_quality(text)
    assert a.has_ocr_indicators
    assert not a.should_skip_ocr


def test_too_few_lines_marks_text_degraded():
    a = analyze_text_quality("palavra " * 400)
    assert a.has_ocr_indicators
    assert not a.should_skip_ocr


def test_isolated_digits_are_ocr_indicators():
    noisy = "\n".join(f"linha numero {i % 10} texto recuperado do scanner" for i in range(80))
    a = analyze_text_quality(noisy)
    assert a.has_ocr_indicators
    assert not a.should_skip_ocr


def test_header_heavy_text_is_not_substantial():
    headers = [
        f"REPÚBLICA FEDERATIVA DO BRASIL COMARCA DE CAMPINAS folha {1000 + i}" for i in range(60)
    ]
    body = good_text(2500).split("\n")
    a = analyze_text_quality("\n".join(headers + body))
    assert not a.has_substantial_content
    assert not a.should_skip_ocr


@pytest.mark.parametrize(
    "text",
    [
        "x",
        "a b c d e f g h i j k l m n o p " * 200,
        "1 2 3 4 5 6 7 8 9\n" * 300,
        good_text(3000),
        good_text(30000),
        "\n".join(["mesma linha repetida sempre"] * 500),
    ],
)
def test_score_is_bounded(text):
    assert 0 <= analyze_text_quality(text).quality_score <= 100


def test_analysis_is_deterministic():
    text = good_text(9000)
    assert analyze_text_quality(text) == analyze_text_quality(text)


def test_custom_rule_table_changes_score():
    analyzer = TextQualityAnalyzer(rules=[QualityRule("always", 500, lambda a, n: True)])
    assert analyzer.analyze(good_text(12000)).quality_score == 100

    analyzer = TextQualityAnalyzer(rules=[QualityRule("never", 50, lambda a, n: False)])
    assert analyzer.analyze(good_text(12000)).quality_score == 0


def test_object_replacement_character_is_not_degraded():
    text = good_text(12000) + "\nFigura \ufffc anexada ao documento de compra"
    a = analyze_text_quality(text)
    assert not a.has_ocr_indicators
    assert a.should_skip_ocr
