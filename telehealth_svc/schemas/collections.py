"""
Registry of the document collections served under /api/v1/{collection}.

Each entry names the URL path segment, the store collection and the request
models used for create (POST) and partial update (PATCH). Collections without
a fixed shape use FreeFormDocument for both.
"""
from dataclasses import dataclass
from typing import Dict, Type

from telehealth_svc.schemas.common import DocumentModel, FreeFormDocument
from telehealth_svc.schemas.order import OrderCreate, OrderUpdate
from telehealth_svc.schemas.patient import PatientCreate, PatientUpdate
from telehealth_svc.schemas.provider import ProviderCreate, ProviderUpdate
from telehealth_svc.schemas.session import MessageCreate, MessageUpdate, SessionCreate, SessionUpdate


@dataclass(frozen=True)
class CollectionSpec:
    path: str
    collection: str
    title: str
    create_model: Type[DocumentModel] = FreeFormDocument
    update_model: Type[DocumentModel] = FreeFormDocument


COLLECTIONS: Dict[str, CollectionSpec] = {
    spec.path: spec
    for spec in (
        CollectionSpec("patients", "patients", "Patients", PatientCreate, PatientUpdate),
        CollectionSpec("providers", "providers", "Providers", ProviderCreate, ProviderUpdate),
        CollectionSpec("orders", "orders", "Orders", OrderCreate, OrderUpdate),
        CollectionSpec("sessions", "sessions", "Sessions", SessionCreate, SessionUpdate),
        CollectionSpec("messages", "messages", "Messages", MessageCreate, MessageUpdate),
        CollectionSpec("tags", "tags", "Tags"),
        CollectionSpec("pharmacies", "pharmacies", "Pharmacies"),
        CollectionSpec("products", "products", "Products"),
        CollectionSpec("discounts", "discounts", "Discounts"),
        CollectionSpec("invoices", "invoices", "Invoices"),
        CollectionSpec("tasks", "tasks", "Tasks"),
        CollectionSpec("notifications", "notifications", "Notifications"),
        CollectionSpec("insurance", "insurance", "Insurance"),
        CollectionSpec("resources", "resources", "Resources"),
    )
}


def get_collection_spec(path: str) -> CollectionSpec:
    """Raises KeyError for paths that are not served."""
    return COLLECTIONS[path]
