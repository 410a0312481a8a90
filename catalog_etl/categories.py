"""Category label normalization.

Source catalogs use their own vocabulary for categories (Payper exposes
English URL slugs). Labels are mapped to the French display names used by
the catalog browser; unknown labels pass through unchanged so a record is
never dropped for lack of a mapping.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

CATEGORY_MAP: Mapping[str, str] = MappingProxyType({
    "polo-shirts": "Polos",
    "t-shirts": "T-shirts",
    "shirts": "Chemises",
    "sweatshirts": "Sweatshirts",
    "pullovers": "Pullovers",
    "polar-jackets": "Polaires",
    "4-season": "4 saisons",
    "work-coats": "Blouses",
    "vests": "Gilets",
    "jackets": "Vestes",
    "soft-shells": "Softshell",
    "padded-soft-shells": "Softshell matelassé",
    "bermuda-shorts": "Bermudas",
    "denim": "Jeans",
    "trousers": "Pantalons",
    "sweat-trousers": "Jogging",
    "overall-and-bib": "Salopettes",
    "thermal-shirts": "T-shirts thermiques",
    "anti-rain": "Anti-pluie",
    "thermal-pants": "Pantalons thermiques",
    "swimwear": "Maillots",
    "accessories": "Accessoires",
    "merchandising": "Merchandising",
    "neckwarmer": "Tour de cou",
    "high-visibility": "Haute visibilité",
    "tech-nik": "Tech-nik",
    "multipro": "Multipro",
    "industry": "Industrie",
    "corporate": "Entreprise",
})


class CategoryNormalizer:
    """Exact, case-sensitive lookup with passthrough on miss."""

    def __init__(self, mapping: Mapping[str, str] = CATEGORY_MAP) -> None:
        self._mapping = MappingProxyType(dict(mapping))

    def normalize(self, label: str) -> str:
        return self._mapping.get(label, label)

    def __contains__(self, label: str) -> bool:
        return label in self._mapping


DEFAULT_NORMALIZER = CategoryNormalizer()
