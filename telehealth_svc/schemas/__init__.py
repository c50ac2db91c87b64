"""
Pydantic schemas for API request/response validation.

This module contains all Pydantic models used at API boundaries.
"""
from telehealth_svc.schemas.collections import COLLECTIONS, CollectionSpec, get_collection_spec
from telehealth_svc.schemas.common import ApiModel, DeletedResponse, DocumentModel, FreeFormDocument, PageResponse
from telehealth_svc.schemas.forms import EvaluateRequest, SubmissionCreate, SubmissionMetadata, SubmissionStatus
from telehealth_svc.schemas.monitoring import ActionRequest, ErrorReport, EventRequest, PerformanceRequest
from telehealth_svc.schemas.order import OrderCreate, OrderItem, OrderUpdate
from telehealth_svc.schemas.patient import Address, PatientCreate, PatientStatus, PatientUpdate
from telehealth_svc.schemas.provider import AvailabilitySlot, ProviderCreate, ProviderUpdate
from telehealth_svc.schemas.session import MessageCreate, MessageUpdate, SessionCreate, SessionUpdate

__all__ = [
    # Shared
    "ApiModel",
    "DeletedResponse",
    "DocumentModel",
    "FreeFormDocument",
    "PageResponse",
    # Collections
    "COLLECTIONS",
    "CollectionSpec",
    "get_collection_spec",
    "Address",
    "PatientCreate",
    "PatientStatus",
    "PatientUpdate",
    "AvailabilitySlot",
    "ProviderCreate",
    "ProviderUpdate",
    "OrderCreate",
    "OrderItem",
    "OrderUpdate",
    "SessionCreate",
    "SessionUpdate",
    "MessageCreate",
    "MessageUpdate",
    # Forms
    "EvaluateRequest",
    "SubmissionCreate",
    "SubmissionMetadata",
    "SubmissionStatus",
    # Monitoring
    "ActionRequest",
    "ErrorReport",
    "EventRequest",
    "PerformanceRequest",
]
