"""
Wilaya reference list used by the carrier API, and name normalization.

Carriers reject anything but their exact spelling, while checkout stores
whatever the customer picked ("16 - Alger", "Béjaïa", "Algiers" ...).
"""

import re
import unicodedata
from typing import Optional

CARRIER_WILAYAS = [
    "Adrar", "Chlef", "Laghouat", "Oum El Bouaghi", "Batna", "Bejaia", "Biskra",
    "Bechar", "Blida", "Bouira", "Tamanrasset", "Tebessa", "Tlemcen", "Tiaret",
    "Tizi Ouzou", "Alger", "Djelfa", "Jijel", "Setif", "Saida", "Skikda",
    "Sidi Bel Abbes", "Annaba", "Guelma", "Constantine", "Medea", "Mostaganem",
    "M'Sila", "Mascara", "Ouargla", "Oran", "El Bayadh", "Illizi",
    "Bordj Bou Arreridj", "Boumerdes", "El Tarf", "Tindouf", "Tissemsilt",
    "El Oued", "Khenchela", "Souk Ahras", "Tipaza", "Mila", "Ain Defla", "Naama",
    "Ain Temouchent", "Ghardaia", "Relizane", "Timimoun", "Bordj Badji Mokhtar",
    "Ouled Djellal", "Beni Abbes", "In Salah", "In Guezzam", "Touggourt", "Djanet",
    "El M'Ghair", "El Meniaa",
]

_WILAYA_BY_LOWER = {name.lower(): name for name in CARRIER_WILAYAS}

_INDEX_PREFIX = re.compile(r"^\s*\d+\s*[-–—]\s*")
_APOSTROPHES = re.compile(r"[’`]")


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_wilaya_name(value: Optional[str]) -> str:
    """Turn a checkout wilaya label into the form used for lookup.

    >>> normalize_wilaya_name("16 - Algiers")
    'Alger'
    >>> normalize_wilaya_name("  Béjaïa ")
    'Bejaia'
    """
    raw = (value or "").strip()
    if not raw:
        return ""
    cleaned = re.sub(r"\s+", " ", _INDEX_PREFIX.sub("", raw)).strip()
    ascii_name = _APOSTROPHES.sub("'", strip_diacritics(cleaned)).strip()
    if ascii_name.lower() == "algiers":
        return "Alger"
    return ascii_name


def resolve_carrier_wilaya_name(value: Optional[str]) -> Optional[str]:
    """Canonical carrier spelling for ``value``, or None when it is not a known wilaya."""
    normalized = normalize_wilaya_name(value)
    if not normalized:
        return None
    return _WILAYA_BY_LOWER.get(normalized.lower())
