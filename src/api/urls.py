"""Main API URL router for /api/v1/."""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from api.v1 import views as v1_views
from api.v1 import activity_views as activity_api_views
from api.v1 import commission_views as commission_api_views
from api.v1 import credit_views as credit_api_views
from api.auth_views import (
    CookieTokenObtainPairView,
    CookieTokenRefreshView,
    LogoutAPIView,
    CSRFTokenAPIView,
    PasswordResetRequestAPIView,
    PasswordResetConfirmAPIView,
    PostRegistrationAPIView,
    RegisterAPIView,
)

app_name = 'api'

router = DefaultRouter()
router.register(r'users', v1_views.UserViewSet, basename='user')
router.register(r'products', v1_views.ProductViewSet, basename='product')
router.register(r'my-products', v1_views.EstablishmentProductViewSet, basename='establishment-product')
router.register(r'notifications/push-subscriptions', v1_views.PushSubscriptionViewSet, basename='push-subscription')
router.register(r'notifications', v1_views.NotificationViewSet, basename='notification')
router.register(r'daily-sheets', activity_api_views.DailySheetViewSet, basename='daily-sheet')
router.register(r'daily-stock-lines', activity_api_views.DailyStockLineViewSet, basename='daily-stock-line')
router.register(r'daily-packaging', activity_api_views.DailyPackagingViewSet, basename='daily-packaging')
router.register(r'daily-expenses', activity_api_views.DailyExpenseViewSet, basename='daily-expense')
router.register(r'credit-customers', credit_api_views.CreditCustomerViewSet, basename='credit-customer')
router.register(r'commissions/me', commission_api_views.MyCommercialActivityViewSet, basename='commission-me')
router.register(r'commissions/sales-reps', commission_api_views.SalesRepresentativeViewSet, basename='sales-rep')
router.register(r'commissions/objectives', commission_api_views.SalesObjectiveViewSet, basename='sales-objective')
router.register(r'commissions/payments', commission_api_views.CommissionPaymentViewSet, basename='commission-payment')

urlpatterns = [
    # Auth endpoints
    path('auth/csrf/', CSRFTokenAPIView.as_view(), name='auth-csrf'),
    path('auth/token/', CookieTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/token/refresh/', CookieTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/logout/', LogoutAPIView.as_view(), name='auth-logout'),
    path('auth/register/', RegisterAPIView.as_view(), name='auth-register'),
    path('auth/post-registration/', PostRegistrationAPIView.as_view(), name='auth-post-registration'),
    path('auth/me/', v1_views.MeView.as_view(), name='auth-me'),
    path('auth/session/', v1_views.SessionView.as_view(), name='auth-session'),
    path('auth/password/reset/', PasswordResetRequestAPIView.as_view(), name='auth-password-reset'),
    path('auth/password/reset/confirm/', PasswordResetConfirmAPIView.as_view(), name='auth-password-reset-confirm'),

    # Notifications
    path('notifications/preferences/', v1_views.NotificationPreferencesView.as_view(), name='notification-preferences'),

    # Activity reports
    path('activity/reports/monthly/', activity_api_views.MonthlyActivityReportView.as_view(), name='activity-report-monthly'),
    path('activity/reports/monthly/export/', activity_api_views.MonthlyActivityExportView.as_view(), name='activity-report-monthly-export'),
    path('activity/reports/annual/', activity_api_views.AnnualActivityReportView.as_view(), name='activity-report-annual'),

    # Commissions (admin)
    path('commissions/settings/', commission_api_views.CommissionSettingsView.as_view(), name='commission-settings'),
    path('commissions/dashboard/', commission_api_views.CommercialDashboardView.as_view(), name='commission-dashboard'),

    path('', include(router.urls)),
]
