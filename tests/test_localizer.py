import pytest

from goldie.errors import LocalizationError
from goldie.notifier.localizer import Localizer


def test_render_with_arguments(localizer):
    assert localizer.render("en", "chooseMonth", Year="2024") == "📅 Choose month (2024):"
    assert localizer.render("ru", "chooseYear") == "📅 Выберите год:"


def test_none_language_uses_default(localizer):
    assert localizer.render(None, "deleteDone") == "We forgot about you."
    assert localizer.render("", "deleteDone") == "We forgot about you."


def test_unknown_language_falls_back_to_default(localizer):
    assert localizer.render("de", "settingsNext") == "Next »"


def test_missing_message_in_one_language_falls_back():
    loc = Localizer({"en": {"hi": "Hello"}, "ru": {}}, "en")
    assert loc.render("ru", "hi") == "Hello"


def test_missing_everywhere_raises():
    loc = Localizer({"en": {}}, "en")
    with pytest.raises(LocalizationError) as exc:
        loc.render("en", "nope")
    assert exc.value.message_id == "nope"


def test_missing_template_argument_raises(localizer):
    with pytest.raises(LocalizationError):
        localizer.render("en", "settingsTitle", Page=1)


def test_catalogs_cover_the_same_messages(localizer):
    assert set(localizer.languages) >= {"en", "ru"}
    en = set(localizer._catalogs["en"])
    ru = set(localizer._catalogs["ru"])
    assert en == ru


def test_default_language_needs_a_catalog():
    with pytest.raises(ValueError):
        Localizer({"ru": {}}, "en")


def test_from_directory_rejects_missing_dir(tmp_path):
    with pytest.raises(FileNotFoundError):
        Localizer.from_directory(tmp_path / "missing")
