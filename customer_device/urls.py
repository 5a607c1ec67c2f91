from django.urls import path
from . import views

urlpatterns = [
    # Lockout cycles
    path('lockout/run-cycle/', views.RunLockoutCycleAPIView.as_view(), name='lockout-run-cycle'),
    path('lockout/process-blocks/', views.ProcessBlocksAPIView.as_view(), name='lockout-process-blocks'),
    path('lockout/process-unblocks/', views.ProcessUnblocksAPIView.as_view(), name='lockout-process-unblocks'),

    # Reports
    path('lockout/stats/', views.LockoutStatsAPIView.as_view(), name='lockout-stats'),
    path('lockout/at-risk/', views.AtRiskDevicesAPIView.as_view(), name='lockout-at-risk'),
    path('lockout/overdue/', views.OverdueSalesAPIView.as_view(), name='lockout-overdue'),
    path('lockout/config/', views.LockoutConfigAPIView.as_view(), name='lockout-config'),
    path('lockout/status/', views.LockoutStatusAPIView.as_view(), name='lockout-status'),

    # Manual lock/unlock (collectors, store managers and above)
    path('lockout/block/<int:sale_id>/', views.ManualBlockAPIView.as_view(), name='lockout-block'),
    path('lockout/unblock/<int:sale_id>/', views.ManualUnblockAPIView.as_view(), name='lockout-unblock'),

    # Managed devices
    path('managed-devices/', views.ManagedDeviceAPIView.as_view(), name='managed-device-list-create'),
]
