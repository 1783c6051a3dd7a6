"""
Record types shared by the test suite
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from models.base import DataType
from persistence.mapping import column, relation


@dataclass
class Note:
    id: int = column("id", pk=True, default=0)
    item_id: int = column("item_id", fk=True, default=0)
    text: str = column("note_text", precision=200, default="")


@dataclass
class LineItem:
    id: int = column("id", pk=True, default=0)
    order_id: int = column("order_id", fk=True, default=0)
    sku: str = column("sku", precision=32, default="")
    qty: int = column("qty", type=DataType.INT32, default=0)
    notes: List[Note] = relation("item_notes", default_factory=list)


@dataclass
class Tag:
    id: int = column("id", pk=True, default=0)
    order_id: int = column("order_id", fk=True, default=0)
    label: str = column("label", precision=32, default="")


@dataclass
class Shipment:
    # Keyed by the order it belongs to
    order_id: int = column("order_id", pk=True, fk=True, default=0)
    carrier: str = column("carrier", precision=32, default="")
    shipped_at: Optional[datetime] = column("shipped_at", default=None)


@dataclass
class Address:
    city: str = column("city", precision=64, default="")
    zip_code: Optional[str] = column("zip_code", precision=16, default=None)


@dataclass
class Order:
    id: int = column("id", pk=True, default=0)
    version: int = column("version", token=True, default=0)
    customer: Optional[str] = column("customer", precision=64, index=True, default=None)
    total: float = column("total", default=0.0)
    paid: bool = column("paid", default=False)
    created_at: datetime = column("created_at", default_factory=lambda: datetime(2024, 1, 15, 10, 30))
    address: Address = field(default_factory=Address)
    items: List[LineItem] = relation("order_items", default_factory=list)
    tags: Dict[int, Tag] = relation("order_tags", default_factory=dict)
    shipment: Optional[Shipment] = relation("order_shipments", default=None)


@dataclass
class Section:
    id: int = column("id", pk=True, default=0)
    document_key: str = column("document_key", fk=True, precision=32, default="")
    heading: str = column("heading", default="")
    body: bytes = column("body", default=b"")


@dataclass
class Document:
    key: str = column("doc_key", pk=True, precision=32, default="")
    title: str = column("title", precision=128, default="")
    ready: bool = column("ready", default=True)
    sections: List[Section] = relation("document_sections", default_factory=list)

    def on_entity_init(self):
        self.title = "untitled"

    def on_entity_save(self):
        return self.ready


def sample_order(**kwargs) -> Order:
    """Order with two line items (one carrying a note), a tag and a shipment"""
    order = Order(customer="Alice", total=10.5, address=Address(city="Lyon", zip_code="69001"), **kwargs)
    order.items = [
        LineItem(sku="A", qty=2, notes=[Note(text="gift wrap")]),
        LineItem(sku="B", qty=1),
    ]
    order.tags = {-1: Tag(label="priority")}
    order.shipment = Shipment(carrier="UPS")
    return order
