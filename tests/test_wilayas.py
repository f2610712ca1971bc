import pytest

from wilayas import CARRIER_WILAYAS, normalize_wilaya_name, resolve_carrier_wilaya_name


def test_reference_list_has_every_wilaya():
    assert len(CARRIER_WILAYAS) == 58
    assert len(set(CARRIER_WILAYAS)) == 58


@pytest.mark.parametrize("raw, expected", [
    ("16 - Alger", "Alger"),
    ("Algiers", "Alger"),
    ("06 – Béjaïa", "Bejaia"),
    ("  tizi   ouzou ", "Tizi Ouzou"),
    ("28 - M’Sila", "M'Sila"),
    ("SÉTIF", "Setif"),
    ("El M`Ghair", "El M'Ghair"),
])
def test_resolves_to_reference_spelling(raw, expected):
    assert resolve_carrier_wilaya_name(raw) == expected


@pytest.mark.parametrize("raw", ["Unknownland", "", None, "16 -"])
def test_unknown_names_do_not_resolve(raw):
    assert resolve_carrier_wilaya_name(raw) is None


def test_normalize_keeps_unknown_names_readable():
    assert normalize_wilaya_name(" 99 - Atlantïs ") == "Atlantis"
