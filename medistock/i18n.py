"""
Translation tables for server-rendered output (reports, status labels).

Callers resolve a translator once per request and pass it down; nothing in
here keeps per-user state.
"""
from typing import Callable, Dict


Translator = Callable[[str], str]


TRANSLATIONS: Dict[str, Dict[str, str]] = {
    "en": {
        "report.title.full": "Full Inventory Report",
        "report.title.restock": "Restock Report",
        "report.title.expiring": "Expiring Items Report",
        "report.summary": "Summary",
        "report.totalItems": "Total items",
        "report.understockedItems": "Understocked items",
        "report.totalRestock": "Total restock needed",
        "report.expiringItems": "Items expiring within 6 weeks",
        "report.noItems": "No items match this report.",
        "report.vehicle": "Vehicle",
        "report.case": "Case",
        "report.module": "Module",
        "report.itemName": "Item",
        "report.quantity": "Quantity",
        "report.target": "Target",
        "report.restockNeeded": "Restock needed",
        "report.expires": "Expires",
        "report.generatedOn": "Generated on",
        "report.footer": "MediStock Inventory Management System",
        "inventory.status.expired": "Expired",
        "inventory.status.expiringSoon": "Expiring soon",
        "inventory.status.understocked": "Understocked",
        "inventory.status.overstocked": "Overstocked",
        "inventory.status.fullyStocked": "Fully stocked",
    },
    "de": {
        "report.title.full": "Vollständiger Inventarbericht",
        "report.title.restock": "Nachfüllbericht",
        "report.title.expiring": "Bericht über ablaufende Artikel",
        "report.summary": "Zusammenfassung",
        "report.totalItems": "Artikel gesamt",
        "report.understockedItems": "Unterbestückte Artikel",
        "report.totalRestock": "Nachfüllbedarf gesamt",
        "report.expiringItems": "Artikel, die innerhalb von 6 Wochen ablaufen",
        "report.noItems": "Keine Artikel für diesen Bericht.",
        "report.vehicle": "Fahrzeug",
        "report.case": "Koffer",
        "report.module": "Modul",
        "report.itemName": "Artikel",
        "report.quantity": "Menge",
        "report.target": "Soll",
        "report.restockNeeded": "Nachfüllbedarf",
        "report.expires": "Ablaufdatum",
        "report.generatedOn": "Erstellt am",
        "report.footer": "MediStock Inventarverwaltung",
        "inventory.status.expired": "Abgelaufen",
        "inventory.status.expiringSoon": "Läuft bald ab",
        "inventory.status.understocked": "Unterbestückt",
        "inventory.status.overstocked": "Überbestückt",
        "inventory.status.fullyStocked": "Vollständig",
    },
}


def get_translator(locale: str) -> Translator:
    """Unknown locales and missing keys fall back to English, then to the key."""
    table = TRANSLATIONS.get((locale or "").lower()[:2], TRANSLATIONS["en"])
    fallback = TRANSLATIONS["en"]

    def t(key: str) -> str:
        return table.get(key) or fallback.get(key) or key

    return t
