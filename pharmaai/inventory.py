"""
Inventory entry: CSV import, demo data and the session-scoped product list.

The CSV reader is deliberately naive (one product per line, fields split on
commas, header skipped) so that the file format pharmacists already export
keeps working. Quoted commas are not supported.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from collections.abc import Iterable, Iterator

from pharmaai.exceptions import InventoryImportError
from pharmaai.models import Product, now_ms

logger = logging.getLogger(__name__)

CSV_COLUMNS = ("name", "category", "description", "stock", "usage")

DEFAULT_NAME = "Bilinmeyen Ürün"
DEFAULT_CATEGORY = "Genel"
DEFAULT_USAGE = "Belirtilmemiş"

_LEADING_INT = re.compile(r"^[+-]?\d+")


def parse_stock(value: str) -> int:
    """Leading integer of ``value`` ("12 kutu" -> 12), 0 when there is none."""
    match = _LEADING_INT.match(value.strip())
    return int(match.group(0)) if match else 0


def parse_csv(text: str) -> list[Product]:
    """
    Parse inventory CSV text into products.

    Blank lines are dropped and the first remaining line is treated as the
    header. Missing or empty columns fall back to their defaults.
    """
    lines = [line for line in text.split("\n") if line.strip()]
    if not lines:
        return []

    stamp = now_ms()
    products = []
    for index, line in enumerate(lines[1:]):
        values = [value.strip() for value in line.split(",")]
        values += [""] * (len(CSV_COLUMNS) - len(values))
        name, category, description, stock, usage = values[: len(CSV_COLUMNS)]
        products.append(
            Product(
                id=f"prod-{stamp}-{index}",
                name=name or DEFAULT_NAME,
                category=category or DEFAULT_CATEGORY,
                description=description,
                stock=parse_stock(stock),
                usage=usage or DEFAULT_USAGE,
            )
        )
    return products


def parse_csv_file(data: bytes, filename: str | None = None) -> list[Product]:
    """Decode an uploaded file (UTF-8, BOM tolerated) and parse it."""
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise InventoryImportError("file is not UTF-8 text", filename=filename) from e
    products = parse_csv(text)
    logger.info("Parsed inventory file", extra={"upload_name": filename, "product_count": len(products)})
    return products


def demo_products() -> list[Product]:
    return [
        Product(
            id="1",
            name="Parol 500mg",
            category="Ağrı Kesici",
            description="Hafif ve orta şiddetli ağrılar",
            stock=100,
            usage="Günde 3-4 defa tok karna",
        ),
        Product(
            id="2",
            name="Majezik Sprey",
            category="Boğaz",
            description="Boğaz ağrısı ve iltihabı",
            stock=45,
            usage="Günde 3 defa boğaza sıkılır",
        ),
        Product(
            id="3",
            name="Bepanthol Krem",
            category="Cilt Bakımı",
            description="Kuru ve tahriş olmuş ciltler",
            stock=20,
            usage="İhtiyaç duyuldukça uygulanır",
        ),
        Product(
            id="4",
            name="Tylolhot Paket",
            category="Grip/Soğuk Algınlığı",
            description="Grip belirtilerini hafifletir",
            stock=200,
            usage="Sıcak suda eritilerek içilir",
        ),
    ]


class Inventory:
    """
    Ordered product list for one UI session.

    Not persisted: a page reload in a new session starts empty.
    """

    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._products: list[Product] = list(products)

    def __len__(self) -> int:
        return len(self._products)

    def __iter__(self) -> Iterator[Product]:
        return iter(self._products)

    def __bool__(self) -> bool:
        return bool(self._products)

    @property
    def products(self) -> list[Product]:
        return list(self._products)

    def add_many(self, products: Iterable[Product]) -> int:
        """Append products after the existing ones. Returns how many were added."""
        new = list(products)
        self._products.extend(new)
        return len(new)

    def import_csv(self, data: bytes, filename: str | None = None) -> int:
        return self.add_many(parse_csv_file(data, filename))

    def add_demo_data(self) -> int:
        return self.add_many(demo_products())

    def clear(self) -> None:
        self._products.clear()

    def names(self) -> list[str]:
        return [product.name for product in self._products]

    def categories(self) -> list[str]:
        """Unique categories in first-seen order."""
        return list(dict.fromkeys(product.category for product in self._products))

    def to_csv(self) -> str:
        """Export in the import column order, header included."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        for product in self._products:
            writer.writerow([getattr(product, column) for column in CSV_COLUMNS])
        return buffer.getvalue()
