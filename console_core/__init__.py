"""
Core logic for the training console - framework-agnostic.

Resolves what events an actor may see, aggregates enrollment, filters the
event list, and classifies post-course analytics. Used by the web API.
"""

# Database (SQLAlchemy)
from .database import get_connection, get_engine, close_engine, is_configured

# Enums
from .enums import Role, EventStatus, EnrollmentType, DateRangePreset, StressCategory

# Identity & impersonation
from .identity import (
    Identity, ImpersonationState, ImpersonationSession, IdentityResolution,
    resolve_identity, IMPERSONATION_STORAGE_KEY,
)
from .storage import KeyValueStorage, MemoryStorage, JsonFileStorage

# Access scope
from .scope import QueryScope, ScopeKind, build_query_scope, organization_scope

# Enrollment aggregation & event transformation
from .allocations import AllocationRecord, aggregate_allocations, merge_enrollment
from .events import RawEventRecord, TrainingEvent, transform_event, transform_events

# Filtering
from .filters import (
    FilterState, FilteredEvents, DateRange,
    apply_filters, filter_events, partition_events, resolve_date_range,
    available_countries, available_regions,
)

# Loading (async functions - must be awaited)
from .event_loader import (
    EventLoadError, EventListController, fetch_training_events, load_training_events,
)
from .query_cache import QueryCache, QueryKeys, get_query_cache, invalidate_event_data

# Analytics
from .analytics import (
    AnalyticsReport, StudentPerformanceRecord, PerformanceTier, StressResponse,
    InsufficientDataError, AnalyticsPayloadError, STRESS_RESPONSE_THRESHOLD,
    classify_performance_tiers, classify_stress_response, summarize_stress_responses,
)

# Countries
from .countries import country_name, country_flag

__all__ = [
    # Database (SQLAlchemy)
    'get_connection', 'get_engine', 'close_engine', 'is_configured',
    # Enums
    'Role', 'EventStatus', 'EnrollmentType', 'DateRangePreset', 'StressCategory',
    # Identity & impersonation
    'Identity', 'ImpersonationState', 'ImpersonationSession', 'IdentityResolution',
    'resolve_identity', 'IMPERSONATION_STORAGE_KEY',
    'KeyValueStorage', 'MemoryStorage', 'JsonFileStorage',
    # Access scope
    'QueryScope', 'ScopeKind', 'build_query_scope', 'organization_scope',
    # Enrollment & events
    'AllocationRecord', 'aggregate_allocations', 'merge_enrollment',
    'RawEventRecord', 'TrainingEvent', 'transform_event', 'transform_events',
    # Filtering
    'FilterState', 'FilteredEvents', 'DateRange',
    'apply_filters', 'filter_events', 'partition_events', 'resolve_date_range',
    'available_countries', 'available_regions',
    # Loading (async)
    'EventLoadError', 'EventListController', 'fetch_training_events', 'load_training_events',
    'QueryCache', 'QueryKeys', 'get_query_cache', 'invalidate_event_data',
    # Analytics
    'AnalyticsReport', 'StudentPerformanceRecord', 'PerformanceTier', 'StressResponse',
    'InsufficientDataError', 'AnalyticsPayloadError', 'STRESS_RESPONSE_THRESHOLD',
    'classify_performance_tiers', 'classify_stress_response', 'summarize_stress_responses',
    # Countries
    'country_name', 'country_flag',
]
