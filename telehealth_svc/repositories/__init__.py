"""
Repository layer for document store access.

This module contains all database access operations, encapsulating SQL and data persistence logic.
"""
from telehealth_svc.repositories.audit_log_repository import AUDIT_LOG_COLLECTION, AuditLogRepository
from telehealth_svc.repositories.base import Database
from telehealth_svc.repositories.cache import QueryCache
from telehealth_svc.repositories.document_repository import DocumentRepository, Repository
from telehealth_svc.repositories.query import Filter, Page, QueryOptions

__all__ = [
    "AUDIT_LOG_COLLECTION",
    "AuditLogRepository",
    "Database",
    "DocumentRepository",
    "Filter",
    "Page",
    "QueryCache",
    "QueryOptions",
    "Repository",
]
