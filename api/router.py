from fastapi import APIRouter
from api.routes import auth, dashboard, konsultasi, tender, distribusi, mitra, roles

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
# Auth routes (prefix: /auth):
# - POST /login - Authenticate with email/password and get access token
# - POST /logout - Logout user (client discards token)
# - GET /me - Current user's profile and roles

api_router.include_router(konsultasi.router, prefix="/konsultasi", tags=["Konsultasi"])
# Konsultasi routes (prefix: /konsultasi):
# - GET/POST /kebun, GET/PATCH/DELETE /kebun/{farm_id} - Farm CRUD
# - GET /kebun/{farm_id}/visits - Five most recent visits of a farm
# - GET/POST /konsultan, GET/PATCH /konsultan/{konsultan_id} - Consultant accounts
# - GET/POST /visits, GET /visits/{visit_id} - Visits with report and recommendations
# - PATCH /visits/{visit_id}/status - Set visit status
# - PUT /visits/{visit_id}/report - Upsert visit report, visit becomes completed
# - POST /visits/{visit_id}/submit - Report + recommendations + completion at once
# - PUT /reports/{report_id}/recommendations - Replace the recommendation set
# - POST /visits/{visit_id}/report/photo - Upload field photo

api_router.include_router(tender.router, prefix="/tender", tags=["Tender"])
# Tender routes (prefix: /tender):
# - GET/POST /assignments, GET /assignments/open - Tender assignments
# - GET /visits/{visit_id}/draft-products - Product lines drafted from a report
# - POST /assignments/from-report - Assignment with one product per recommendation
# - GET/PATCH/DELETE /assignments/{assign_id}
# - POST /offerings, GET /offerings/mine, GET /offerings/{offering_id}
# - PUT /offerings/{offering_id}/products, DELETE /offerings/{offering_id}
# - GET /approvals - Open/closed assignments with their winner
# - GET /assignments/{assign_id}/offerings - Offerings to compare
# - POST /assignments/{assign_id}/winner - Select winning offering

api_router.include_router(distribusi.router, prefix="/distribusi", tags=["Distribusi"])
# Distribusi routes (prefix: /distribusi):
# - GET/POST /drivers, GET/PATCH /drivers/{driver_id} - Driver accounts
# - GET /surat-jalan, GET /surat-jalan/{assign_id} - Delivery orders of won tenders
# - POST /surat-jalan/{assign_id}/delivery - Assign a driver
# - GET /deliveries - Recorded deliveries, newest first

api_router.include_router(mitra.router, prefix="/produk-mitra", tags=["Produk & Mitra"])
# Produk & Mitra routes (prefix: /produk-mitra):
# - GET/POST /mitra, PATCH/DELETE /mitra/{mitra_id} - Partner stores
# - GET/POST /products, GET/PATCH/DELETE /products/{product_id} - Partner products

api_router.include_router(roles.router, prefix="/roles", tags=["Roles"])
# Roles routes (prefix: /roles):
# - GET "" - Active roles
# - GET /me/menus - Menus for the current user
# - GET/POST /users/{user_id} - Roles of a user, grant a role
# - DELETE /users/{user_id}/{role_name} - Revoke a role

api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
# Dashboard routes (prefix: /dashboard):
# - GET /stats - User, farm, consultant, partner and tender counts (admin)
