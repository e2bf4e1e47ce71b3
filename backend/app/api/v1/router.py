"""
API v1 Main Router
Aggregates all v1 API endpoints into a single router.

Structure:
- /auth/* - Login, logout, refresh, current user
- /roles/* - Roles and permission matrices
- /users/* - User management, bulk import, per-user store assignment
- /clients/* - Billing clients
- /elements/* - Branding element catalogue
- /stores/* - Stores, workflow, exports and reports
- /analytics/* - Dashboards
- /notifications - Derived notifications
- /error-logs/* - Recorded server errors (SUPER_ADMIN)
- /health, /config/status
"""

from fastapi import APIRouter

from app.api.v1 import analytics, auth, clients, elements, error_logs, health, roles, stores, users


# Create main v1 router
# This router will be included in main.py with prefix /api/v1
api_router = APIRouter()


# No authentication required for login/refresh
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])

api_router.include_router(roles.router, prefix="/roles", tags=["Roles"])

api_router.include_router(users.router, prefix="/users", tags=["Users"])

api_router.include_router(clients.router, prefix="/clients", tags=["Clients"])

api_router.include_router(elements.router, prefix="/elements", tags=["Elements"])

# Store CRUD plus the recce/installation workflow
api_router.include_router(stores.router, prefix="/stores", tags=["Stores"])

api_router.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])

api_router.include_router(analytics.notifications_router, prefix="/notifications", tags=["Notifications"])

api_router.include_router(error_logs.router, prefix="/error-logs", tags=["Error Logs"])

api_router.include_router(health.router, tags=["Health"])
