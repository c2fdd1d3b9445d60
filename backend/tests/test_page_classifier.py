import pytest

from webactivity.services.page_classifier import PageClassifier


@pytest.fixture
def classifier():
    return PageClassifier()


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://de.example.com/", "home"),
        ("https://de.example.com/datenschutz-privacy-policy", "utility"),
        ("https://uk.example.com/contact-us", "utility"),
        ("https://uk.example.com/treatment-options", "product"),
        ("https://uk.example.com/blog/living-well", "article"),
        ("https://uk.example.com/weight", "other"),
    ],
)
def test_classify_url(classifier, url, expected):
    assert classifier.classify_url(url) == expected


def test_long_hyphenated_slug_is_an_article(classifier):
    assert classifier.is_article_url("https://uk.example.com/why-weight-is-not-about-willpower")
    assert not classifier.is_article_url("https://uk.example.com/weight-loss")


def test_signals_from_markup(classifier):
    html = """
    <html><body>
      <iframe src="https://www.youtube.com/embed/abc"></iframe>
      <form action="/subscribe"><input name="email"></form>
    </body></html>
    """
    text = " ".join(["word"] * 450)

    signals = classifier.extract_signals("https://uk.example.com/page", text, html)

    assert signals["has_video"]
    assert signals["has_form"]
    assert not signals["has_calculator"]
    assert signals["word_count"] == 450
    assert signals["reading_time"] == 3


def test_signals_from_text_only(classifier):
    signals = classifier.extract_signals(
        "https://uk.example.com/bmi-calculator",
        "Enter your height. See references [1].",
    )

    assert signals["has_calculator"]
    assert signals["has_references"]
    assert not signals["has_video"]
    assert not signals["has_form"]
