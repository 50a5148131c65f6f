import pytest

from ivoice.data.languages import (
    SUPPORTED_LANGUAGES,
    UnknownLanguageError,
    get_language,
    resolve_pair,
    supported_codes,
)


def test_catalogue_contents():
    assert supported_codes() == ["en", "id", "zh", "es", "ko", "ja", "nl", "ar"]
    assert all(language.tts_locale.startswith(language.code) for language in SUPPORTED_LANGUAGES)


def test_get_language_normalises_code():
    assert get_language(" JA ").name == "Japanese"


def test_unknown_language_raises():
    with pytest.raises(UnknownLanguageError):
        get_language("xx")


def test_other_than_picks_the_language_not_spoken():
    pair = resolve_pair("en", "ja")

    assert pair.other_than("en").code == "ja"
    assert pair.other_than("ja").code == "en"
    assert pair.other_than("fr").code == "en"


def test_swapped():
    pair = resolve_pair("en", "id").swapped()

    assert pair.mother.code == "id"
    assert pair.target.code == "en"
