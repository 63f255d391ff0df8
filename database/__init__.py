"""
Database package for the Pipeline CRM and Auto Shop API.
Provides SQLAlchemy models, connection management, and session handling.
"""

from database.connection import (
    Base,
    get_db,
    get_db_session,
    init_db,
    drop_db,
    configure_database,
    check_db_connection
)

from database.models import (
    Organization,
    User,
    Deal,
    DealStageHistory,
    DealActivity,
    DealSummary,
    EventLog,
    Notification
)

from database.auto_models import (
    AutoShop,
    AutoUser,
    AutoInvitation,
    AutoBay,
    AutoIntegrationConfig,
    AutoCustomer,
    AutoVehicle,
    AutoRepairOrder,
    AutoLineItem,
    AutoPayment,
    AutoCannedService,
    AutoCannedServiceItem,
    AutoDviTemplate,
    AutoDviInspection,
    AutoDviItem,
    AutoAppointment,
    AutoActivityLog,
    AutoCommunicationLog,
    AutoTechSession,
    AutoQboSyncLog
)

__all__ = [
    # Connection
    'Base',
    'get_db',
    'get_db_session',
    'init_db',
    'drop_db',
    'configure_database',
    'check_db_connection',
    # Pipeline models
    'Organization',
    'User',
    'Deal',
    'DealStageHistory',
    'DealActivity',
    'DealSummary',
    'EventLog',
    'Notification',
    # Auto shop models
    'AutoShop',
    'AutoUser',
    'AutoInvitation',
    'AutoBay',
    'AutoIntegrationConfig',
    'AutoCustomer',
    'AutoVehicle',
    'AutoRepairOrder',
    'AutoLineItem',
    'AutoPayment',
    'AutoCannedService',
    'AutoCannedServiceItem',
    'AutoDviTemplate',
    'AutoDviInspection',
    'AutoDviItem',
    'AutoAppointment',
    'AutoActivityLog',
    'AutoCommunicationLog',
    'AutoTechSession',
    'AutoQboSyncLog'
]
